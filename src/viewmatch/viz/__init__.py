from viewmatch.viz.layout import (
    CANDIDATE_COLOR,
    MATCH_COLOR,
    CanvasFrame,
    CorrespondenceLines,
    ViewCanvas,
    choose_orientation,
    layout_correspondences,
)

__all__ = [
    "CANDIDATE_COLOR",
    "MATCH_COLOR",
    "CanvasFrame",
    "CorrespondenceLines",
    "ViewCanvas",
    "choose_orientation",
    "layout_correspondences",
]
