"""
Shared fixtures for the plot mover tests.
"""

import copy
import logging

import pytest

from plot_mover.config import DEFAULT_CONFIG
from plot_mover.registry import TransferRegistry

GiB = 1024 ** 3


def make_config(staging_paths, destination_paths, **settings):
    config = copy.deepcopy(DEFAULT_CONFIG)
    config['Paths']['STAGING_PATHS'] = [str(p) for p in staging_paths]
    config['Paths']['DESTINATION_PATHS'] = [str(p) for p in destination_paths]
    config['Settings'].update({
        'ROUND_INTERVAL': 0.05,
        'STOP_POLL_INTERVAL': 0.01,
        'DRAIN_POLL_INTERVAL': 0.01,
    })
    config['Settings'].update(settings)
    return config


def fixed_space(space_by_volume, default=5 * GiB):
    """Free-space function returning canned values per volume path."""
    def free_space(volume):
        return space_by_volume.get(str(volume), default)
    return free_space


@pytest.fixture
def staging(tmp_path):
    path = tmp_path / "staging"
    path.mkdir()
    return path


@pytest.fixture
def volumes(tmp_path):
    paths = []
    for name in ("hdd1", "hdd2"):
        path = tmp_path / name
        path.mkdir()
        paths.append(path)
    return paths


@pytest.fixture
def make_plot():
    def _make_plot(directory, name="plot-k32-0001.plot", size=4096):
        path = directory / name
        path.write_bytes(bytes(i % 251 for i in range(size)))
        return path
    return _make_plot


@pytest.fixture
def registry(volumes):
    return TransferRegistry([str(v) for v in volumes])


@pytest.fixture(autouse=True)
def debug_logging(caplog):
    caplog.set_level(logging.DEBUG)
