import pytest

from config import Config


def test_defaults_validate():
    Config.validate()


def test_validate_rejects_bad_ratio(monkeypatch):
    monkeypatch.setattr(Config, "LOW_STOCK_RATIO", 1.5)
    with pytest.raises(ValueError):
        Config.validate()


def test_validate_rejects_negative_threshold(monkeypatch):
    monkeypatch.setattr(Config, "REFILL_THRESHOLD_DAYS", -1)
    with pytest.raises(ValueError):
        Config.validate()


if __name__ == "__main__":
    pytest.main([__file__])
