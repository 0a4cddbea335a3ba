"""Tests for the GPU pricing reference table."""

from gpu_pricing import (
    GPU_PRICING,
    PROVIDERS,
    all_gpu_types,
    cheapest_provider,
    get_gpu_price,
    gpus_by_provider,
)


def test_every_row_is_complete():
    keys = {"provider", "gpu_type", "price_hr", "memory", "compute", "availability"}
    for row in GPU_PRICING:
        assert set(row) == keys
        assert row["provider"] in PROVIDERS
        assert row["availability"] in ("high", "medium", "low")
        assert row["price_hr"] > 0


def test_get_gpu_price():
    assert get_gpu_price("H100 80GB", "aws") == 8.10
    assert get_gpu_price("A100 40GB", "gcp") == 2.93


def test_get_gpu_price_unknown_is_zero():
    assert get_gpu_price("TPU v5", "gcp") == 0.0
    assert get_gpu_price("L4 24GB", "azure") == 0.0


def test_gpus_by_provider():
    azure = gpus_by_provider("azure")
    assert len(azure) == 3
    assert all(row["provider"] == "azure" for row in azure)


def test_all_gpu_types_unique_in_table_order():
    types = all_gpu_types()
    assert types[0] == "H100 80GB"
    assert len(types) == len(set(types))
    assert "V100 16GB" in types


def test_cheapest_provider():
    assert cheapest_provider("H100 80GB")["provider"] == "gcp"
    assert cheapest_provider("A10 24GB")["provider"] == "azure"
    assert cheapest_provider("TPU v5") is None
