"""Shared fakes: no test ever runs blkid, findmnt or efibootmgr."""
import io
import subprocess

import pytest

from lusc.main import Prompter


class FakeSysInfo:
    """Stands in for SystemInfo with canned answers; records lookups."""

    def __init__(self, devices=(), uuids=None, mounts=None):
        self.devices = list(devices)
        self.uuids = dict(uuids or {})
        self.mounts = dict(mounts or {})
        self.uuid_lookups = []

    def list_block_devices(self):
        return list(self.devices)

    def partition_exists(self, path):
        return path in self.devices

    def get_uuid(self, device):
        self.uuid_lookups.append(device)
        return self.uuids.get(device)

    def get_device_for_mountpoint(self, mountpoint):
        return self.mounts.get(mountpoint)


class FakeRunner:
    """Callable replacing run_command: maps argv tuples to (rc, stdout)."""

    def __init__(self, answers=None):
        self.answers = dict(answers or {})
        self.calls = []

    def __call__(self, args):
        self.calls.append(list(args))
        returncode, stdout = self.answers.get(tuple(args), (1, ''))
        return subprocess.CompletedProcess(args, returncode, stdout=stdout, stderr='')


@pytest.fixture
def nvme_sysinfo():
    return FakeSysInfo(
        devices=['/dev/nvme0n1p1', '/dev/nvme0n1p2', '/dev/sda1'],
        uuids={'/dev/nvme0n1p1': 'ABCD-0001', '/dev/nvme0n1p2': '1234-ABCD'},
        mounts={'/boot': '/dev/nvme0n1p1', '/': '/dev/nvme0n1p2'})


@pytest.fixture
def make_prompter():
    """make_prompter('y\\n...') -> (Prompter, output StringIO)"""
    def _make(text):
        out = io.StringIO()
        return Prompter(io.StringIO(text), out), out
    return _make


@pytest.fixture
def fake_runner():
    """fake_runner({('blkid', ...): (rc, stdout)}) -> FakeRunner"""
    return FakeRunner


@pytest.fixture
def fake_sysinfo():
    return FakeSysInfo
