"""
Synthetic experiment records for the GPU spend dashboard.

The catalog is built once per process: a spread of historical runs over the
last 30 days plus a fixed set of currently running experiments that the live
simulator ticks forward.
"""

import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from formatters import average, calculate_roi, total

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════
# REFERENCE LISTS
# ═══════════════════════════════════════════════════════════════════
RESEARCHERS = [
    "Sarah Chen",
    "Marcus Rodriguez",
    "Aisha Patel",
    "James Kim",
    "Elena Volkov",
    "David Okonkwo",
    "Mei Zhang",
    "Lucas Silva",
]

TEAMS = ["Research", "Applied AI", "Platform", "Foundations"]

PROJECTS = [
    "LLM Fine-tuning",
    "Vision Models",
    "Multimodal Research",
    "RLHF Pipeline",
    "Alignment Research",
    "Safety Testing",
]

MODEL_NAMES = [
    "llama-3-70b-instruct",
    "llama-3.1-8b-base",
    "mistral-7b-v0.3",
    "mixtral-8x7b-instruct",
    "phi-3-medium-4k",
    "qwen-2.5-72b",
    "deepseek-v2-lite",
    "gemma-2-27b",
    "yi-34b-chat",
    "falcon-180b",
]

STATUSES = ("queued", "running", "completed", "failed")

# Base $/hr per GPU used by the generator, before the provider markup
BASE_GPU_RATES = {
    "H100 80GB": 8.0,
    "A100 80GB": 4.0,
    "A100 40GB": 3.0,
    "L4 24GB": 1.2,
    "A10G 24GB": 1.2,
}
PROVIDER_MARKUP = {"azure": 1.10, "aws": 1.05, "gcp": 1.0}
GPU_COUNTS = [1, 2, 4, 8]
BATCH_SIZES = [16, 32, 64, 128]
DATASET_SIZES = ["50K", "100K", "500K", "1M", "5M"]

STORAGE_SHARE = 0.05  # of compute
NETWORK_SHARE = 0.03  # of compute
FAILED_SHARE = 0.15

RUNNING_EXPERIMENTS = [
    {
        "index": 1001,
        "name": "llama-3-70b-dpo-training",
        "model_name": "llama-3-70b-instruct",
        "gpu_type": "H100 80GB",
        "num_gpus": 8,
        "duration_hours": 12.5,
        "total_cost": 810.0,
        "researcher": "Sarah Chen",
        "team": "Research",
        "project": "RLHF Pipeline",
    },
    {
        "index": 1002,
        "name": "mistral-7b-finetune-medical",
        "model_name": "mistral-7b-v0.3",
        "gpu_type": "A100 80GB",
        "num_gpus": 2,
        "duration_hours": 8.2,
        "total_cost": 67.28,
        "researcher": "Marcus Rodriguez",
        "team": "Applied AI",
        "project": "LLM Fine-tuning",
    },
    {
        "index": 1003,
        "name": "phi-3-medium-code-gen",
        "model_name": "phi-3-medium-4k",
        "gpu_type": "A100 40GB",
        "num_gpus": 1,
        "duration_hours": 5.7,
        "total_cost": 17.67,
        "researcher": "Aisha Patel",
        "team": "Platform",
        "project": "LLM Fine-tuning",
    },
]


# ═══════════════════════════════════════════════════════════════════
# RECORDS
# ═══════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ExperimentRecord:
    id: str
    name: str
    model_name: str
    status: str
    gpu_type: str
    provider: str
    num_gpus: int
    start_time: datetime
    end_time: Optional[datetime]
    duration_hours: float
    total_cost: float
    cost_per_hour: float
    # Performance
    initial_accuracy: float
    final_accuracy: float
    accuracy_gain: float
    # Training details
    epochs: int
    batch_size: int
    learning_rate: float
    dataset_size: str
    # Team
    researcher: str
    team: str
    project: str
    # Cost breakdown
    compute_cost: float
    storage_cost: float
    network_cost: float
    # Efficiency
    avg_gpu_utilization: float
    cost_per_accuracy_point: float
    roi: float


@dataclass
class EpochMetrics:
    epoch: int
    cost: float
    accuracy: float
    loss: float
    duration: float  # minutes
    gpu_utilization: float


def hourly_rate(gpu_type: str, provider: str, num_gpus: int) -> float:
    return round(BASE_GPU_RATES.get(gpu_type, 1.2) * num_gpus * PROVIDER_MARKUP.get(provider, 1.0), 2)


def _build_record(*, compute_cost: float, initial_accuracy: float, accuracy_gain: float, **fields) -> ExperimentRecord:
    compute = round(compute_cost, 2)
    storage = round(compute_cost * STORAGE_SHARE, 2)
    network = round(compute_cost * NETWORK_SHARE, 2)
    total_cost = round(compute + storage + network, 2)

    initial = round(initial_accuracy, 1)
    gain = round(accuracy_gain, 1)

    return ExperimentRecord(
        total_cost=total_cost,
        compute_cost=compute,
        storage_cost=storage,
        network_cost=network,
        initial_accuracy=initial,
        accuracy_gain=gain,
        final_accuracy=round(initial + gain, 1),
        cost_per_accuracy_point=round(total_cost / gain, 2),
        roi=round(calculate_roi(gain, total_cost), 2),
        **fields,
    )


def _start_of_day(now: datetime, days_ago: int, rng: random.Random) -> datetime:
    day = now - timedelta(days=days_ago)
    return day.replace(hour=rng.randrange(24), minute=rng.randrange(60), second=0, microsecond=0)


def generate_experiment(index: int, days_ago: int, rng: random.Random, now: datetime) -> ExperimentRecord:
    gpu_type = rng.choice(list(BASE_GPU_RATES))
    provider = rng.choice(list(PROVIDER_MARKUP))
    num_gpus = rng.choice(GPU_COUNTS)
    cost_per_hour = hourly_rate(gpu_type, provider, num_gpus)

    duration_hours = round(rng.uniform(2, 50), 2)

    # Runs started today have not been scheduled yet; older runs are finished
    if days_ago == 0:
        status = "queued"
    else:
        status = "failed" if rng.random() < FAILED_SHARE else "completed"

    if status == "failed":
        utilization = rng.uniform(15, 45)
    else:
        utilization = rng.uniform(55, 90)

    start_time = _start_of_day(now, days_ago, rng)
    end_time = start_time + timedelta(hours=duration_hours) if status in ("completed", "failed") else None

    model_name = rng.choice(MODEL_NAMES)

    return _build_record(
        id=f"exp-{index:05d}",
        name=f"{model_name.split('-')[0]}-finetune-{index}",
        model_name=model_name,
        status=status,
        gpu_type=gpu_type,
        provider=provider,
        num_gpus=num_gpus,
        start_time=start_time,
        end_time=end_time,
        duration_hours=duration_hours,
        cost_per_hour=cost_per_hour,
        compute_cost=cost_per_hour * duration_hours,
        initial_accuracy=rng.uniform(65, 85),
        accuracy_gain=rng.uniform(1, 9),
        epochs=rng.randint(5, 24),
        batch_size=rng.choice(BATCH_SIZES),
        learning_rate=float(f"{rng.uniform(0.00001, 0.00051):.2e}"),
        dataset_size=rng.choice(DATASET_SIZES),
        researcher=rng.choice(RESEARCHERS),
        team=rng.choice(TEAMS),
        project=rng.choice(PROJECTS),
        avg_gpu_utilization=round(utilization, 1),
    )


def generate_running_experiment(template: dict, rng: random.Random, now: datetime) -> ExperimentRecord:
    """A record for one of the fixed running experiments.

    ``template["total_cost"]`` is the spend so far; the start time is backdated so
    that it matches the hourly rate.
    """
    provider = rng.choice(list(PROVIDER_MARKUP))
    cost_per_hour = hourly_rate(template["gpu_type"], provider, template["num_gpus"])
    spent = template["total_cost"]
    hours_so_far = spent / cost_per_hour if cost_per_hour > 0 else 0.0

    return _build_record(
        id=f"exp-{template['index']:05d}",
        name=template["name"],
        model_name=template["model_name"],
        status="running",
        gpu_type=template["gpu_type"],
        provider=provider,
        num_gpus=template["num_gpus"],
        start_time=now - timedelta(hours=hours_so_far),
        end_time=None,
        duration_hours=template["duration_hours"],
        cost_per_hour=cost_per_hour,
        compute_cost=spent / (1 + STORAGE_SHARE + NETWORK_SHARE),
        initial_accuracy=rng.uniform(65, 85),
        accuracy_gain=rng.uniform(1, 9),
        epochs=rng.randint(5, 24),
        batch_size=rng.choice(BATCH_SIZES),
        learning_rate=float(f"{rng.uniform(0.00001, 0.00051):.2e}"),
        dataset_size=rng.choice(DATASET_SIZES),
        researcher=template["researcher"],
        team=template["team"],
        project=template["project"],
        avg_gpu_utilization=round(rng.uniform(55, 90), 1),
    )


def generate_epoch_metrics(record: ExperimentRecord, rng: Optional[random.Random] = None) -> list[EpochMetrics]:
    rng = rng or random.Random()
    cost_per_epoch = record.total_cost / record.epochs
    accuracy_per_epoch = record.accuracy_gain / record.epochs
    minutes_per_epoch = record.duration_hours * 60 / record.epochs

    epochs = []
    for i in range(1, record.epochs + 1):
        progress = i / record.epochs
        accuracy = record.initial_accuracy + accuracy_per_epoch * i * (1 + rng.uniform(-0.1, 0.1))
        utilization = min(100.0, max(0.0, record.avg_gpu_utilization + rng.uniform(-5, 5)))
        epochs.append(EpochMetrics(
            epoch=i,
            cost=round(cost_per_epoch * i, 2),
            accuracy=round(accuracy, 2),
            loss=round(2.5 * math.exp(-progress * 2) + rng.uniform(0, 0.1), 4),
            duration=round(minutes_per_epoch * (1 + rng.uniform(-0.15, 0.15)), 1),
            gpu_utilization=round(utilization, 1),
        ))
    return epochs


# ═══════════════════════════════════════════════════════════════════
# CATALOG
# ═══════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ExperimentCatalog:
    experiments: tuple = field(default_factory=tuple)
    running: tuple = field(default_factory=tuple)

    def all_records(self) -> list[ExperimentRecord]:
        return [*self.experiments, *self.running]

    def get(self, experiment_id: str) -> Optional[ExperimentRecord]:
        for record in self.all_records():
            if record.id == experiment_id:
                return record
        return None

    def by_status(self, status: str) -> list[ExperimentRecord]:
        return [e for e in self.experiments if e.status == status]

    def by_researcher(self, researcher: str) -> list[ExperimentRecord]:
        return [e for e in self.experiments if e.researcher == researcher]

    def by_team(self, team: str) -> list[ExperimentRecord]:
        return [e for e in self.experiments if e.team == team]

    def completed(self) -> list[ExperimentRecord]:
        return self.by_status("completed")

    def total_spend(self) -> float:
        return total(e.total_cost for e in self.experiments)

    def average_roi(self) -> float:
        return average(e.roi for e in self.completed())


def build_catalog(seed: Optional[int] = None, now: Optional[datetime] = None, count: int = 60, days: int = 30) -> ExperimentCatalog:
    rng = random.Random(seed)
    now = now or datetime.now()

    experiments = tuple(
        generate_experiment(i + 1, math.floor(i / count * days), rng, now)
        for i in range(count)
    )
    running = tuple(generate_running_experiment(template, rng, now) for template in RUNNING_EXPERIMENTS)

    logger.debug(f"Built catalog: {len(experiments)} historical, {len(running)} running (seed={seed})")
    return ExperimentCatalog(experiments=experiments, running=running)
