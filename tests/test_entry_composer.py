"""Kernel parameters, efibootmgr commands and the generated script."""
import os
import shlex
import stat

import pytest

from lusc.EntryComposer import (BootImages, BootEntry, EntryError, kernel_params,
                                compose_entries, script_text, write_script)


def test_kernel_params_default():
    assert kernel_params('1234-ABCD') == 'root=UUID=1234-ABCD rw'
    assert kernel_params('1234-ABCD', '') == 'root=UUID=1234-ABCD rw'
    assert kernel_params('1234-ABCD', '   ') == 'root=UUID=1234-ABCD rw'


def test_kernel_params_extra():
    assert kernel_params('1234-ABCD', 'quiet splash') == 'root=UUID=1234-ABCD rw quiet splash'


def test_kernel_params_extra_kept_verbatim():
    assert kernel_params('1234-ABCD', '  quiet  splash ') == 'root=UUID=1234-ABCD rw   quiet  splash '


def test_compose_primary_and_fallback():
    primary, fallback = compose_entries('/dev/nvme0n1', '1', 'Arch',
                                        'root=UUID=1234-ABCD rw')
    assert primary.label == 'Arch'
    assert fallback.label == 'Arch (Fallback)'
    assert primary.initrd == '\\initramfs-linux.img'
    assert fallback.initrd == '\\initramfs-linux-fallback.img'
    assert primary.command() == (
        "efibootmgr --create --disk /dev/nvme0n1 --part 1 --label Arch"
        " --loader /vmlinuz-linux"
        " --unicode 'root=UUID=1234-ABCD rw initrd=\\initramfs-linux.img' --verbose")
    assert "--label 'Arch (Fallback)'" in fallback.command()
    assert 'initrd=\\initramfs-linux-fallback.img' in fallback.command()


def test_argv_layout():
    entry = BootEntry(disk='/dev/sda', part='1', label='Arch',
                      params='root=UUID=x rw', initrd='\\initramfs-linux.img')
    assert entry.argv() == [
        'efibootmgr', '--create', '--disk', '/dev/sda', '--part', '1',
        '--label', 'Arch', '--loader', '/vmlinuz-linux',
        '--unicode', 'root=UUID=x rw initrd=\\initramfs-linux.img', '--verbose']


def test_command_quotes_hostile_text():
    primary, _ = compose_entries('/dev/sda', '1', 'Arch";reboot;"',
                                 "root=UUID=x rw quiet'; rm -rf /")
    # the shell sees exactly the original arguments again
    assert shlex.split(primary.command()) == primary.argv()


def test_custom_images():
    images = BootImages(loader='/vmlinuz-linux-lts',
                        initramfs='\\initramfs-linux-lts.img',
                        fallback='\\initramfs-linux-lts-fallback.img')
    primary, fallback = compose_entries('/dev/sda', '1', 'LTS', 'root=UUID=x rw', images)
    assert primary.loader == fallback.loader == '/vmlinuz-linux-lts'
    assert primary.initrd == '\\initramfs-linux-lts.img'
    assert fallback.initrd == '\\initramfs-linux-lts-fallback.img'


@pytest.mark.parametrize('label', ['', 'Arch\nLinux', 'bad\x1b[0m'])
def test_compose_rejects_bad_labels(label):
    with pytest.raises(EntryError):
        compose_entries('/dev/sda', '1', label, 'root=UUID=x rw')


def test_script_text_order():
    primary, fallback = compose_entries('/dev/sda', '1', 'Arch', 'root=UUID=x rw')
    lines = script_text(primary, fallback).splitlines()
    assert lines == ['#!/bin/bash',
                     '# Generated UEFI boot entries by LUSC',
                     fallback.command(),
                     primary.command(),
                     'exit 0']


def test_write_script_mode_and_overwrite(tmp_path):
    path = tmp_path / 'uefi_stub_gen_output.sh'
    path.write_text('stale contents\n' * 50)
    primary, fallback = compose_entries('/dev/sda', '1', 'Arch', 'root=UUID=x rw')
    assert write_script(primary, fallback, str(path)) == str(path)
    assert path.read_text() == script_text(primary, fallback)
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o755


def test_write_script_unwritable(tmp_path):
    primary, fallback = compose_entries('/dev/sda', '1', 'Arch', 'root=UUID=x rw')
    with pytest.raises(OSError):
        write_script(primary, fallback, str(tmp_path / 'missing-dir' / 'x.sh'))
