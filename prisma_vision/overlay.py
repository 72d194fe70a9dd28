#!/usr/bin/env python3
"""
Overlay Renderer
Draws detected candles, structure levels, the band and a pressure label back
onto a copy of the frame for human verification. Purely cosmetic.
"""

import logging
import os

import cv2
import matplotlib

matplotlib.use("Agg")  # headless: figures are only ever saved to disk
import matplotlib.patches as patches
import matplotlib.pyplot as plt

from .color_segmenter import to_rgb
from .models import ColorClass, ShapeHint

logger = logging.getLogger("prisma_vision.overlay")

# RGB colors
BULLISH_COLOR = (0, 255, 0)
BEARISH_COLOR = (255, 0, 0)
RESISTANCE_COLOR = (255, 51, 102)
SUPPORT_COLOR = (0, 255, 136)
BAND_COLOR = (179, 102, 255)
LABEL_COLOR = (255, 255, 255)


def render_overlay(pixels, candles, structure):
    """
    Draw the analysis onto a working copy of the frame.

    Args:
        pixels (np.ndarray): RGB or RGBA frame pixels (left untouched)
        candles (tuple): ordered CandleSequence
        structure (MarketStructure): levels, band and pressure to draw

    Returns:
        np.ndarray or None: annotated RGB copy, None if the frame layout is unsupported
    """
    rgb_image = to_rgb(pixels)
    if rgb_image is None:
        return None
    canvas = rgb_image.copy()
    width = canvas.shape[1]

    for candle in candles:
        color = BULLISH_COLOR if candle.color is ColorClass.BULLISH else BEARISH_COLOR
        cv2.rectangle(canvas, (candle.x, candle.y), (candle.x + candle.width, candle.y + candle.height), color, 1)

    for level in structure.levels.resistance:
        y = int(round(level.y))
        cv2.line(canvas, (0, y), (width - 1, y), RESISTANCE_COLOR, 1)
    for level in structure.levels.support:
        y = int(round(level.y))
        cv2.line(canvas, (0, y), (width - 1, y), SUPPORT_COLOR, 1)

    band = structure.band
    if band is not None:
        for y_value in (band.upper, band.center, band.lower):
            y = int(round(y_value))
            cv2.line(canvas, (0, y), (width - 1, y), BAND_COLOR, 1)

    label = f"VOL {structure.pressure_score:+.0f} {structure.phase.value}"
    cv2.putText(canvas, label, (5, 15), cv2.FONT_HERSHEY_PLAIN, 1.0, LABEL_COLOR, 1)
    return canvas


def save_analysis_figure(pixels, analysis, output_path):
    """
    Save a two-panel diagnostic figure: annotated frame and analysis summary.

    Args:
        pixels (np.ndarray): original frame pixels
        analysis (FrameAnalysis): result of one analysis pass
        output_path (str): PNG path to write

    Returns:
        str: the path written
    """
    rgb_image = to_rgb(pixels)
    if rgb_image is None:
        raise ValueError("Cannot build an analysis figure from an unsupported frame layout")

    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(20, 8))
    fig.suptitle('Chart Signal Analysis', fontsize=16, fontweight='bold')

    # 1. Frame with candle boxes and levels
    ax1.imshow(rgb_image)
    ax1.set_title('1. Detected Candles & Structure', fontsize=14, fontweight='bold')
    for candle in analysis.candles:
        edge_color = 'green' if candle.color is ColorClass.BULLISH else 'red'
        rect = patches.Rectangle((candle.x, candle.y), candle.width, candle.height,
                                 linewidth=2, edgecolor=edge_color, facecolor='none', alpha=0.8)
        ax1.add_patch(rect)
        if candle.shape is not ShapeHint.NORMAL:
            ax1.text(candle.x, candle.y - 4, candle.shape.value, color=edge_color, fontsize=8)

    levels = analysis.structure.levels
    for level in levels.resistance:
        ax1.axhline(y=level.y, color='orange', linestyle='--', alpha=0.8)
    for level in levels.support:
        ax1.axhline(y=level.y, color='cyan', linestyle='--', alpha=0.8)
    band = analysis.structure.band
    if band is not None:
        ax1.axhline(y=band.center, color='magenta', alpha=0.6)
        ax1.axhspan(band.upper, band.lower, color='magenta', alpha=0.08)

    ax1.set_xlim(0, rgb_image.shape[1])
    ax1.set_ylim(rgb_image.shape[0], 0)  # Flip Y axis

    # 2. Summary
    ax2.axis('off')
    ax2.set_title('2. Analysis Summary', fontsize=14, fontweight='bold')

    signal = analysis.signal
    market = signal.market_data
    candle_details = '\n'.join(
        f"  C{i + 1}: {c.color.value} x={c.x} y={c.y} h={c.height} ({c.shape.value})"
        for i, c in enumerate(analysis.candles[-8:])
    ) or "  No candles detected"

    summary_text = f"""
SIGNAL: {signal.type.value} ({signal.confidence}%)
Method: {signal.method}
Reasons: {', '.join(signal.reasons) or '-'}

MARKET:
• Pressure: {market.pressure_score}
• Phase: {market.phase.value}
• Zone: {market.zone.value}
• Band: {market.breakout}
• Resistance levels: {len(levels.resistance)}
• Support levels: {len(levels.support)}

LAST CANDLES ({len(analysis.candles)} total):
{candle_details}
    """
    ax2.text(0.05, 0.95, summary_text, transform=ax2.transAxes, fontsize=11,
             verticalalignment='top', fontfamily='monospace',
             bbox=dict(boxstyle='round,pad=0.5', facecolor='lightgray', alpha=0.8))

    os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)
    plt.tight_layout()
    plt.savefig(output_path, dpi=100, bbox_inches='tight', facecolor='white')
    plt.close(fig)

    logger.info(f"💾 Analysis figure saved to: {output_path}")
    return output_path
