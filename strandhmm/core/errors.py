"""Exception and warning types raised by the StrandHMM pipeline."""

from typing import Optional


class ConfigurationError(ValueError):
    """
    Invalid model parameters (dispersion outside (0, 1), non-positive rate).

    Aborts processing for the affected sample or cell only.
    """

    def __init__(self, message: str, sample: Optional[str] = None,
                 cell: Optional[str] = None, chrom: Optional[str] = None):
        context = []
        if sample is not None:
            context.append(f"sample={sample}")
        if cell is not None:
            context.append(f"cell={cell}")
        if chrom is not None:
            context.append(f"chrom={chrom}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)
        self.sample = sample
        self.cell = cell
        self.chrom = chrom


class DataShapeError(ValueError):
    """Count arrays or boundary maps that break the bin layout contract. Fatal."""


class DegenerateInputWarning(UserWarning):
    """Empty chromosome after filtering, or a sample without usable variance."""
