#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Queries against the running system (blkid, findmnt) and the
split of a partition path into disk and partition number.
"""
# pylint: disable=invalid-name
import re
import subprocess
from typing import Optional


class PartitionError(Exception):
    """A partition path that is unknown or cannot be split"""


def run_command(args):
    """Run an external command (argv list, no shell) and wait for it.

    Returns the CompletedProcess with text stdout/stderr captured.
    A program that cannot be launched is reported as return code 127
    with empty output, the same as a shell would.
    """
    try:
        return subprocess.run(args, stdout=subprocess.PIPE,
                              stderr=subprocess.PIPE, text=True, check=False)
    except OSError as exc:
        return subprocess.CompletedProcess(args, 127, stdout='', stderr=str(exc))


def first_line(text):
    """ First non-empty line of some command output, or None """
    for line in (text or '').splitlines():
        line = line.strip()
        if line:
            return line
    return None


# e.g., /dev/nvme0n1p1, /dev/mmcblk0p2
PSUFFIX_PAT = re.compile(r'^(/dev/\S*\d)p(\d+)$')
# e.g., /dev/sda1, /dev/vdb12
PLAIN_PAT = re.compile(r'^(\D+)(\d+)$')


def split_partition(path: str):
    """Split a partition path into (disk, partition number).

    Two naming conventions are handled:
      '/dev/nvme0n1p1' -> ('/dev/nvme0n1', '1')  (digit, 'p', digits)
      '/dev/sda1'      -> ('/dev/sda', '1')      (split at first digit)
    Anything else raises PartitionError.
    """
    mat = PSUFFIX_PAT.match(path)
    if mat:
        return mat.group(1), mat.group(2)
    mat = PLAIN_PAT.match(path)
    if mat:
        return mat.group(1), mat.group(2)
    raise PartitionError(f"Error: cannot determine disk and partition number of '{path}'")


class SystemInfo:
    """Gather block device information via blkid and findmnt"""
    runner = staticmethod(run_command)

    def __init__(self, runner=None):
        if runner:
            self.runner = runner

    def list_block_devices(self):
        """ Device paths known to blkid, one per line of 'blkid -o device' """
        result = self.runner(['blkid', '-o', 'device'])
        if result.returncode != 0:
            return []
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def partition_exists(self, path: str) -> bool:
        """ True if the path is exactly one of the listed block devices """
        return path in self.list_block_devices()

    def get_uuid(self, device: str) -> Optional[str]:
        """ Filesystem UUID of the device, or None """
        result = self.runner(['blkid', '-o', 'value', '-s', 'UUID', device])
        if result.returncode != 0:
            return None
        return first_line(result.stdout)

    def get_device_for_mountpoint(self, mountpoint: str) -> Optional[str]:
        """ The source device mounted on mountpoint, or None """
        result = self.runner(['findmnt', '-n', '-o', 'SOURCE', mountpoint])
        if result.returncode != 0:
            return None
        return first_line(result.stdout)
