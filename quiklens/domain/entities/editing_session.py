from __future__ import annotations

from dataclasses import dataclass

from quiklens.domain.entities.edit_params import AdjustmentValues, AspectRatioOption, EditParams
from quiklens.domain.entities.geometry import Dimensions, DisplayRect, OriginalRect
from quiklens.domain.entities.images import DisplayedImage


@dataclass
class EditingSession:
    """Live, mutable state of one open file.

    ``base_image_dimensions`` always describes ``displayed_image``; ``committed_crop`` is in
    true-original space; ``ui_crop_region`` is in displayed-base space and only meaningful
    while ``is_cropping``. ``generation`` changes whenever the loaded file changes, so work
    started for an older file can recognise itself as obsolete.
    """

    source_bytes: bytes | None = None
    filename: str | None = None
    source_media_type: str | None = None
    adjustments: AdjustmentValues = AdjustmentValues()
    committed_crop: OriginalRect | None = None
    grayscale: bool = False
    output_size: Dimensions | None = None
    base_image_dimensions: Dimensions | None = None
    true_original_dimensions: Dimensions | None = None
    displayed_image: DisplayedImage | None = None
    ui_crop_region: DisplayRect | None = None
    is_cropping: bool = False
    aspect_ratio: AspectRatioOption = AspectRatioOption.FREEFORM
    is_loading: bool = False
    error: str | None = None
    generation: int = 0

    @property
    def is_loaded(self) -> bool:
        return self.source_bytes is not None and self.true_original_dimensions is not None

    def reset(self) -> None:
        """Drop the loaded file and return every field to its default."""
        self.source_bytes = None
        self.filename = None
        self.source_media_type = None
        self.adjustments = AdjustmentValues()
        self.committed_crop = None
        self.grayscale = False
        self.output_size = None
        self.base_image_dimensions = None
        self.true_original_dimensions = None
        self.displayed_image = None
        self.ui_crop_region = None
        self.is_cropping = False
        self.aspect_ratio = AspectRatioOption.FREEFORM
        self.is_loading = False
        self.error = None
        self.generation += 1

    def snapshot(self) -> EditParams:
        return EditParams(
            adjustments=self.adjustments,
            committed_crop=self.committed_crop,
            source_base_dimensions=self.base_image_dimensions,
            applied_crop_for_this_state=self.committed_crop,
            grayscale=self.grayscale,
            output_size=self.output_size,
        )

    def restore(self, params: EditParams) -> None:
        """Re-derive the session from a history entry; leaves crop mode."""
        self.adjustments = params.adjustments
        self.committed_crop = params.committed_crop
        self.grayscale = params.grayscale
        self.output_size = params.output_size
        if params.source_base_dimensions is not None:
            self.base_image_dimensions = params.source_base_dimensions
        self.is_cropping = False
        self.ui_crop_region = None
