#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Compose the efibootmgr commands for an EFI stub boot entry
(primary and fallback) and emit them as an executable script.
"""
# pylint: disable=invalid-name,too-many-arguments
import os
import sys
import shlex
from dataclasses import dataclass

# Use slots for memory efficiency and typo protection on Python 3.10+
_dataclass_kwargs = {'slots': True} if sys.version_info >= (3, 10) else {}

SCRIPT_NAME = 'uefi_stub_gen_output.sh'
SCRIPT_MODE = 0o755  # rwxr-xr-x
DEFAULT_LOADER = '/vmlinuz-linux'


class EntryError(Exception):
    """A boot entry that cannot be composed safely"""


@dataclass(**_dataclass_kwargs)
class BootImages:
    """Where the kernel and initramfs images live on the EFI partition.

    The loader is given with '/' separators; the initrd paths are passed
    to the kernel and so use the firmware's '\\' separators.
    """
    loader: str = DEFAULT_LOADER
    initramfs: str = '\\initramfs-linux.img'
    fallback: str = '\\initramfs-linux-fallback.img'
    fallback_suffix: str = ' (Fallback)'


@dataclass(**_dataclass_kwargs)
class BootEntry:
    """One 'efibootmgr --create' invocation.

    Attributes:
        disk: disk holding the EFI partition (e.g., '/dev/nvme0n1')
        part: partition number on that disk (e.g., '1')
        label: firmware menu label (e.g., 'Arch')
        params: kernel parameters (e.g., 'root=UUID=... rw quiet')
        initrd: initramfs image (e.g., '\\initramfs-linux.img')
        loader: kernel image on the EFI partition
    """
    disk: str
    part: str
    label: str
    params: str
    initrd: str
    loader: str = DEFAULT_LOADER

    def unicode_arg(self) -> str:
        """ The kernel command line handed to the stub """
        return f'{self.params} initrd={self.initrd}'

    def argv(self):
        """ The efibootmgr argument list """
        return ['efibootmgr', '--create',
                '--disk', self.disk,
                '--part', self.part,
                '--label', self.label,
                '--loader', self.loader,
                '--unicode', self.unicode_arg(),
                '--verbose']

    def command(self) -> str:
        """ The argument list as one shell-safe line """
        return shlex.join(self.argv())


def kernel_params(root_uuid: str, extra: str = '') -> str:
    """ Default kernel parameters plus the user's extra ones, appended as typed """
    params = f'root=UUID={root_uuid} rw'
    if extra and extra.strip():
        params += f' {extra}'
    return params


def check_text(what, text):
    """ Reject text that has no business on a command line """
    if not text:
        raise EntryError(f'Error: empty {what}.')
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in text):
        raise EntryError(f'Error: {what} contains control characters.')
    return text


def compose_entries(disk, part, label, params, images=None):
    """Build the (primary, fallback) pair of boot entries.

    The fallback entry differs only in its label (suffixed with
    ' (Fallback)') and in booting the fallback initramfs.
    """
    images = images or BootImages()
    check_text('boot label', label)
    check_text('kernel parameters', params)
    primary = BootEntry(disk=disk, part=part, label=label, params=params,
                        initrd=images.initramfs, loader=images.loader)
    fallback = BootEntry(disk=disk, part=part,
                         label=label + images.fallback_suffix, params=params,
                         initrd=images.fallback, loader=images.loader)
    return primary, fallback


def script_text(primary: BootEntry, fallback: BootEntry) -> str:
    """ Contents of the generated script; fallback goes in first """
    lines = ['#!/bin/bash',
             '# Generated UEFI boot entries by LUSC',
             fallback.command(),
             primary.command(),
             'exit 0',
             ]
    return '\n'.join(lines) + '\n'


def write_script(primary, fallback, path=SCRIPT_NAME):
    """Create (or overwrite) the script and make it executable.

    Raises OSError if the file cannot be written or its mode set.
    """
    with open(path, 'w', encoding='utf-8') as fh:
        fh.write(script_text(primary, fallback))
    os.chmod(path, SCRIPT_MODE)
    return path
