"""
Reporting helpers: console headers and conversion of model-space labels
back to sales units.
"""

import math

LABEL_SCALES = ('log10', 'identity')


def to_sales_value(score: float, label_scale: str = 'log10') -> float:
    """
    Convert a label-space value into sales units.

    The statistics files store the next-month label as log10(sales), so a
    model score of 6.0 is one million in sales.
    """
    if label_scale == 'log10':
        return math.pow(10.0, score)
    if label_scale == 'identity':
        return float(score)
    raise ValueError(f"Unknown label scale: {label_scale}. Choose from: {', '.join(LABEL_SCALES)}")


def print_header(title: str) -> None:
    print("\n" + "=" * 70)
    print(title.upper())
    print("=" * 70)


def print_exception(message: str) -> None:
    print("\n" + "!" * 70)
    print(f"EXCEPTION: {message}")
    print("!" * 70 + "\n")
