"""
Cloud GPU pricing reference table (provider x GPU type -> hourly rate).
"""

from typing import Optional

PROVIDERS = ("aws", "gcp", "azure")

# ═══════════════════════════════════════════════════════════════════
# GPU PRICING
# ═══════════════════════════════════════════════════════════════════
GPU_PRICING = [
    # ─── NVIDIA H100 ───
    {"provider": "aws", "gpu_type": "H100 80GB", "price_hr": 8.10, "memory": "80GB HBM3", "compute": "989 TFLOPS", "availability": "low"},
    {"provider": "gcp", "gpu_type": "H100 80GB", "price_hr": 7.85, "memory": "80GB HBM3", "compute": "989 TFLOPS", "availability": "low"},
    {"provider": "azure", "gpu_type": "H100 80GB", "price_hr": 8.45, "memory": "80GB HBM3", "compute": "989 TFLOPS", "availability": "medium"},
    # ─── NVIDIA A100 ───
    {"provider": "aws", "gpu_type": "A100 80GB", "price_hr": 4.10, "memory": "80GB HBM2e", "compute": "312 TFLOPS", "availability": "high"},
    {"provider": "gcp", "gpu_type": "A100 80GB", "price_hr": 3.93, "memory": "80GB HBM2e", "compute": "312 TFLOPS", "availability": "high"},
    {"provider": "azure", "gpu_type": "A100 80GB", "price_hr": 4.25, "memory": "80GB HBM2e", "compute": "312 TFLOPS", "availability": "high"},
    {"provider": "aws", "gpu_type": "A100 40GB", "price_hr": 3.06, "memory": "40GB HBM2e", "compute": "312 TFLOPS", "availability": "high"},
    {"provider": "gcp", "gpu_type": "A100 40GB", "price_hr": 2.93, "memory": "40GB HBM2e", "compute": "312 TFLOPS", "availability": "high"},
    # ─── NVIDIA L4 ───
    {"provider": "aws", "gpu_type": "L4 24GB", "price_hr": 1.12, "memory": "24GB GDDR6", "compute": "121 TFLOPS", "availability": "high"},
    {"provider": "gcp", "gpu_type": "L4 24GB", "price_hr": 0.95, "memory": "24GB GDDR6", "compute": "121 TFLOPS", "availability": "high"},
    # ─── NVIDIA A10G / A10 ───
    {"provider": "aws", "gpu_type": "A10G 24GB", "price_hr": 1.51, "memory": "24GB GDDR6", "compute": "125 TFLOPS", "availability": "high"},
    {"provider": "azure", "gpu_type": "A10 24GB", "price_hr": 1.48, "memory": "24GB GDDR6", "compute": "125 TFLOPS", "availability": "high"},
    # ─── NVIDIA V100 ───
    {"provider": "aws", "gpu_type": "V100 32GB", "price_hr": 3.06, "memory": "32GB HBM2", "compute": "125 TFLOPS", "availability": "medium"},
    {"provider": "gcp", "gpu_type": "V100 16GB", "price_hr": 2.48, "memory": "16GB HBM2", "compute": "125 TFLOPS", "availability": "medium"},
]


def get_gpu_price(gpu_type: str, provider: str) -> float:
    for row in GPU_PRICING:
        if row["gpu_type"] == gpu_type and row["provider"] == provider:
            return row["price_hr"]
    return 0.0


def gpus_by_provider(provider: str) -> list[dict]:
    return [row for row in GPU_PRICING if row["provider"] == provider]


def all_gpu_types() -> list[str]:
    """Unique GPU types, in table order."""
    return list(dict.fromkeys(row["gpu_type"] for row in GPU_PRICING))


def cheapest_provider(gpu_type: str) -> Optional[dict]:
    rows = [row for row in GPU_PRICING if row["gpu_type"] == gpu_type]
    if not rows:
        return None
    return min(rows, key=lambda r: r["price_hr"])
