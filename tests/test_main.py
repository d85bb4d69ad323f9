import os

import cv2
import numpy as np

from plate_recognition.main import main, save_results
from plate_recognition.models import Candidate, Glyph, GlyphReading, PlateReading


def test_missing_input_returns_error(tmp_path, capsys):
    code = main(["--input", str(tmp_path / "nope.jpg"), "--ocr", "none"])
    assert code == 1
    assert "Image not found" in capsys.readouterr().out


def test_blank_image_reports_no_plates(tmp_path, capsys):
    path = str(tmp_path / "blank.png")
    cv2.imwrite(path, np.full((120, 160, 3), 128, dtype=np.uint8))
    code = main(["--input", path, "--ocr", "none", "--output", str(tmp_path / "out")])
    assert code == 0
    assert "No license plates detected" in capsys.readouterr().out


def test_bad_config_file(tmp_path, capsys):
    path = str(tmp_path / "blank.png")
    cv2.imwrite(path, np.full((50, 50), 128, dtype=np.uint8))
    cfg = tmp_path / "cfg.json"
    cfg.write_text('{"unknown": 1}')
    assert main(["--input", path, "--config", str(cfg)]) == 2
    assert "Invalid config" in capsys.readouterr().out


def test_save_results_layout(tmp_path):
    glyph = Glyph(index=0, image=np.zeros((64, 48), dtype=np.uint8), bbox=(2, 3, 10, 30))
    reading = PlateReading(
        candidate=Candidate(x=0, y=0, width=100, height=40, area=4000, extent=1.0, solidity=1.0),
        method="otsu",
        glyphs=[GlyphReading(glyph=glyph, symbol="1")],
        text="1",
        state="Unknown",
        plate_image=np.full((40, 100), 200, dtype=np.uint8),
        binary_mask=np.zeros((40, 100), dtype=bool),
    )
    out = tmp_path / "out"
    save_results([reading], str(out))
    assert os.path.isfile(out / "plate_1.png")
    assert os.path.isfile(out / "plate_1_binary.png")
    saved = cv2.imread(str(out / "plate_1" / "char_01.png"), cv2.IMREAD_GRAYSCALE)
    assert saved.shape == (64, 48)
