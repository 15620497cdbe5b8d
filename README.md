# armorvision

Finds armor plates in camera frames. A box-proposal model suggests
regions; image processing then confirms each region by its colour,
locates its two light bars, computes the four plate corners and the
plate centre, and a second small model reads the number on the plate.

Everything works on plain NumPy arrays (BGR, `uint8`). The package does
not load or run models itself: you pass each model in as a callable, and
the package does the work around it.

## Pipeline

1. **Preprocessing** (`armorvision.preprocess.preprocess_image`): the
   frame is converted to Lab; when the mean of the L channel is below
   `l_mean_threshold`, L is passed through a gamma lookup table
   (`gamma_lut`). The frame is converted back to BGR, letterboxed into a
   640×640 square (`letterbox_geometry`) and turned into a float32 RGB
   blob of shape `(1, 3, 640, 640)` scaled to `[0, 1]`.
2. **Detection** (`armorvision.detector.ArmorDetector.detect`): the
   model output, rows `cx, cy, w, h, conf` shaped `(1, 5, N)` or
   `(5, N)`, is decoded back to original image coordinates by
   `decode_boxes`. Boxes at or below the confidence threshold or reaching
   outside the image are dropped, each box is widened by 5 pixels on both
   sides, and the rest are reduced with non-maximum suppression
   (`armorvision.imageops.nms_boxes`).
3. **Colour check** (`ArmorDetector.color_filter`): the box is converted
   to HSV and kept only if more than 30 pixels fall inside the range of
   the target colour (`color_mask`, with `TargetColor.BLUE` or
   `TargetColor.RED`).
4. **Light bars** (`armorvision.bars`): the colour mask is closed with a
   3×7 kernel, its outer contours are fitted with rotated rectangles, and
   bars with the wrong length-to-width ratio or tilt are rejected
   (`find_bars`, `is_valid_bar`). The first pair of bars with matching
   length, spacing and orientation forms the plate (`pair_bars`); its
   corners come from `armor_corners` and its centre from
   `diagonal_center`.
5. **Number classification**
   (`armorvision.classifier.NumberClassifier.classify`): a strip of the
   plate's grey crop is cut out, resized to 20×28 and binarised with
   Otsu's threshold (`extract_numbers`, `otsu_threshold`), then given to
   the number model as a `(1, 1, 28, 20)` blob. The model returns one
   logit per entry of `CLASS_NAMES` (`"1"`–`"5"`, `"outpost"`, `"guard"`,
   `"base"`, `"negative"`). Plates labelled `negative`, or without a
   usable crop, are dropped.

`classifier.warp_matrix` computes the perspective matrix that maps the
plate corners onto a 32×28 number image; the classification step above
does not use it.

## Usage

```python
from armorvision.classifier import NumberClassifier
from armorvision.detector import ArmorDetector
from armorvision.model import TargetColor
from armorvision.processor import Processor

detector = ArmorDetector(
    model=my_detector_model,          # callable: (1, 3, 640, 640) blob -> (1, 5, N)
    confidence_threshold=0.3,
    nms_threshold=0.3,
    gamma=0.5,
    l_mean_threshold=60.0,
    target_color=TargetColor.BLUE,
)
classifier = NumberClassifier(model=my_number_model)  # callable: blob -> 9 logits

processor = Processor(detector, classifier)
detections = processor.process_frame(frame, roi_offset=(0, 0))
for detection in detections:
    print(detection.confidence, detection.distance_to_image_center, detection.corners)
```

A `Detection` holds the plate's confidence, the distance from its centre
to the image centre, `position` set from `roi_offset`, and its four
corners (left-bottom, left-top, right-top, right-bottom). The corners are
truncated to integers and packed into the four floats of `orientation`
by `tracking.pack_corners`; `Detection.corners` unpacks them with
`tracking.unpack_corners`. After a frame, `processor.final_armors` holds
the labelled `FinalArmor` records and `processor.is_red` tells whether
red was the target.

Settings are changed with `Processor.configure(InferenceConfig(...))`:
`confidence_threshold`, `nms_threshold`, `gamma`, `l_mean_threshold`,
`target_color` and `draw_type`.

## Drawing and tracking

`Processor.draw(image, camera_matrix, distortion)` draws onto the image in
place according to `draw_type` (`DrawType.DISABLE`, `RAW`, `ARMOR`,
`TRACK`). `ARMOR` and `TRACK` outline each plate, mark its centre and
write its label and colour (`drawing.draw_armors`); `TRACK` also marks
the tracked points (`drawing.draw_track`) and needs a camera matrix.
A new `Processor` starts with `DrawType.DISABLE`.

`armorvision.tracking` turns tracker state (`TrackData`: centre,
yaw, two radii, height step and armor count) into the positions of four
plates around the target followed by its centre (`armor_positions`),
converts quaternions to rotation vectors
(`quaternion_to_rotation_vector`) and projects 3-D points through a
pinhole camera with 0, 4, 5 or 8 distortion coefficients
(`project_point`). `Processor.on_track` and `Processor.on_compute` store
those points, optionally mapped by a transform callable, but only while
`draw_type` is `DrawType.TRACK`.

## What it does not do

The package has no command-line tool and no camera, video or message
input and output: frames come in and detections come out as Python
objects. It does not load model files or ship models; both models must be
supplied as callables.