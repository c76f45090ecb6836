import numpy as np
import pytest

from fit_builder import activity_bytes


@pytest.fixture
def scenario_a_pace():
    # 40 minutes alternating 1 min @ 4:00/km and 1 min @ 6:00/km
    block = np.concatenate([np.full(60, 4.0), np.full(60, 6.0)])
    return np.tile(block, 20)


@pytest.fixture
def ride_bytes():
    """Ten minutes of riding with power, heart rate, cadence and speed."""
    rng = np.random.default_rng(42)
    samples = []
    for _ in range(600):
        samples.append(
            {
                "heart_rate": int(140 + rng.integers(-5, 6)),
                "power": int(200 + rng.integers(-20, 21)),
                "cadence": 90,
                "speed": 8333,  # 30 km/h
            }
        )
    return activity_bytes(samples)


@pytest.fixture
def fit_file(tmp_path, ride_bytes):
    path = tmp_path / "ride.fit"
    path.write_bytes(ride_bytes)
    return path
