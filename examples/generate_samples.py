#!/usr/bin/env python
"""
Generate synthetic sample pages and marked text for trying out docpack.

Each sample is a page image containing visual elements (chart, table, photo,
icon, handwritten note) plus a text file in which those elements are
referenced by [IMAGE_CROP_NEEDED: ...] tags, as an upstream extractor would
produce.

Usage:
    python examples/generate_samples.py
    docpack --input examples/sample_pages/sample_report.txt \
            --source examples/sample_pages/sample_report.png --output ./output
"""

import numpy as np
from pathlib import Path


def create_sample_report_page():
    """Create a report page with a chart, a photo and a table."""
    import cv2

    # Letter proportions at a reduced size: 850 x 1100
    img = np.ones((1100, 850, 3), dtype=np.uint8) * 255

    # Title
    cv2.putText(img, "Quarterly Report", (230, 60),
               cv2.FONT_HERSHEY_DUPLEX, 1.2, (0, 0, 0), 2)

    # Bar chart, top-left
    cv2.rectangle(img, (40, 100), (440, 400), (0, 0, 0), 2)
    for i, height in enumerate([90, 160, 120, 220]):
        x = 70 + i * 90
        cv2.rectangle(img, (x, 390 - height), (x + 55, 390), (70, 70, 70), -1)

    # Photo, top-right
    cv2.rectangle(img, (600, 110), (810, 390), (40, 120, 200), -1)
    cv2.circle(img, (700, 220), 50, (30, 200, 240), -1)

    # Summary text
    y = 450
    for line in [
        "Revenue grew in all four quarters, led by the",
        "new stores opened in the second half of the year.",
    ]:
        cv2.putText(img, line, (50, y), cv2.FONT_HERSHEY_SIMPLEX, 0.55, (0, 0, 0), 1)
        y += 28

    # Table, bottom
    table_x, table_y = 100, 700
    cell_w, cell_h = 150, 60
    for row in range(5):
        for col in range(4):
            x = table_x + col * cell_w
            y = table_y + row * cell_h
            cv2.rectangle(img, (x, y), (x + cell_w, y + cell_h), (0, 0, 0), 2)
            label = f"Q{col+1}" if row == 0 else f"{(row * 7 + col * 3) % 50}"
            cv2.putText(img, label, (x + 55, y + 38),
                       cv2.FONT_HERSHEY_SIMPLEX, 0.55, (0, 0, 0), 1)

    text = (
        "Quarterly Report\n"
        "\n"
        "[IMAGE_CROP_NEEDED: large bar chart of revenue per quarter in the top-left]\n"
        "[IMAGE_CROP_NEEDED: photo of the flagship store, top right]\n"
        "\n"
        "Revenue grew in all four quarters, led by the new stores opened in the "
        "second half of the year.\n"
        "\n"
        "[IMAGE_CROP_NEEDED: table of revenue by quarter at the bottom]\n"
    )
    return img, text


def create_sample_notes_page():
    """Create a form page with an icon and a handwritten margin note."""
    import cv2

    img = np.ones((1100, 850, 3), dtype=np.uint8) * 255

    # Logo icon, top-left
    cv2.circle(img, (90, 90), 35, (0, 0, 0), 3)
    cv2.line(img, (65, 90), (115, 90), (0, 0, 0), 3)

    cv2.putText(img, "Inspection Form", (250, 100),
               cv2.FONT_HERSHEY_DUPLEX, 1.2, (0, 0, 0), 2)

    y = 200
    for line in [
        "Site: North warehouse",
        "Inspector: R. Alvarez",
        "All fire exits checked and clear.",
    ]:
        cv2.putText(img, line, (60, y), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (0, 0, 0), 1)
        y += 35

    # Handwriting-like scribble in the lower right margin
    rng = np.random.default_rng(7)
    for i in range(12):
        x = 560 + i * 18 + int(rng.integers(-3, 4))
        y = 820 + int(rng.integers(-6, 7))
        cv2.ellipse(img, (x, y), (6, 9), int(rng.integers(0, 180)), 0, 300, (40, 40, 120), 2)

    text = (
        "[IMAGE_CROP_NEEDED: small icon top-left]\n"
        "Inspection Form\n"
        "\n"
        "Site: North warehouse\n"
        "Inspector: R. Alvarez\n"
        "All fire exits checked and clear.\n"
        "\n"
        "[IMAGE_CROP_NEEDED: handwritten note in the bottom margin]\n"
    )
    return img, text


def main():
    import cv2

    samples_dir = Path(__file__).parent / "sample_pages"
    samples_dir.mkdir(exist_ok=True)

    samples = [
        ("sample_report", create_sample_report_page()),
        ("sample_notes", create_sample_notes_page()),
    ]

    for name, (img, text) in samples:
        img_path = samples_dir / f"{name}.png"
        cv2.imwrite(str(img_path), img)
        print(f"Created: {img_path}")

        text_path = samples_dir / f"{name}.txt"
        text_path.write_text(text, encoding="utf-8")
        print(f"Created: {text_path}")

    print(f"\nGenerated {len(samples)} sample pages in {samples_dir}")


if __name__ == "__main__":
    main()
