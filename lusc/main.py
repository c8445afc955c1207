#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Interactive creator of EFI stub boot entries: asks for the EFI and
root partitions and a label, composes the efibootmgr commands, writes
them to a script and optionally runs it.
"""
# pylint: disable=broad-exception-caught,too-many-instance-attributes
# pylint: disable=too-many-statements,too-many-locals,too-many-arguments
import os
import sys
import shutil
import subprocess
import traceback
import argparse
from dataclasses import dataclass
from typing import Optional
from .SystemInfo import SystemInfo, PartitionError, split_partition
from .EntryComposer import (BootImages, BootEntry, EntryError, SCRIPT_NAME,
                            _dataclass_kwargs,
                            kernel_params, compose_entries, write_script)


def _ansi(code):
    return code if sys.stdout.isatty() else ''

BLUE = _ansi('\033[0;34m')
GREEN = _ansi('\033[0;32m')
RED = _ansi('\033[0;31m')
RESET = _ansi('\033[0m')

MAX_TOKEN_LEN = 255
PREREQS = ('blkid',)      # cannot work without these
OPTIONAL = ('efibootmgr', 'findmnt')  # warn only

USAGE = """\
This is a simple interactive tool to automatically generate UEFI boot entries.
It generates efibootmgr commands and exports them to a small executable.
No changes will be written to disk before confirmation.
The EFI partition must be mounted to /boot and the kernel and initramfs image must be located at the root of it!
Some UEFI systems don't allow to create more than one EFI STUB entry.
Unfortunately, efibootmgr is not able to change EFI entries. You always have to delete/overwrite entries to make changes happen.
Please don't use this program if you don't exactly know what you are doing here and what EFI STUB means.
You can get some great info at: https://wiki.archlinux.org/title/EFISTUB
And now good luck with EFI STUB booting.
Options:
    -h, --help      Display this help message"""


class InputError(Exception):
    """Standard input ended or could not be read"""


@dataclass(**_dataclass_kwargs)
class Session:
    """Everything gathered during one run.

    Attributes:
        efi_partition: e.g., '/dev/nvme0n1p1'
        root_partition: e.g., '/dev/nvme0n1p2'
        label: boot entry label (e.g., 'Arch')
        extra_params: extra kernel parameters as typed (may be '')
        efi_disk: disk of the EFI partition (e.g., '/dev/nvme0n1')
        efi_part: partition number of the EFI partition (e.g., '1')
        efi_uuid: filesystem UUID of the EFI partition
        root_uuid: filesystem UUID of the root partition
        primary: the regular boot entry
        fallback: the boot entry using the fallback initramfs
        action: 'c', 'ce' or anything else (abort)
    """
    efi_partition: str = ''
    root_partition: str = ''
    label: str = ''
    extra_params: str = ''
    efi_disk: str = ''
    efi_part: str = ''
    efi_uuid: str = ''
    root_uuid: str = ''
    primary: Optional[BootEntry] = None
    fallback: Optional[BootEntry] = None
    action: str = ''


class Prompter:
    """Line oriented questions on stdin/stdout"""

    def __init__(self, infile=None, outfile=None):
        self.infile = infile if infile is not None else sys.stdin
        self.outfile = outfile if outfile is not None else sys.stdout

    def say(self, text=''):
        """ Write a line to the user """
        print(text, file=self.outfile, flush=True)

    def _readline(self, prompt, what):
        if prompt:
            self.outfile.write(prompt)
            self.outfile.flush()
        try:
            line = self.infile.readline()
        except (OSError, ValueError) as exc:
            raise InputError(f'Error reading {what}. Exiting.') from exc
        if not line:
            raise InputError(f'Error reading {what}. Exiting.')
        return line.rstrip('\r\n')

    def _read_words(self, prompt, what):
        """ Skip blank lines like scanf does; return the words of the first real one """
        words = self._readline(prompt, what).split()
        while not words:
            words = self._readline('', what).split()
        return words

    def read_char(self, prompt, what='input') -> str:
        """ First character typed """
        return self._read_words(prompt, what)[0][0]

    def read_token(self, prompt, what) -> str:
        """ First whitespace-delimited word of the answer """
        words = self._read_words(prompt, what)
        token = words[0]
        if len(token) > MAX_TOKEN_LEN:
            raise InputError(f'Error reading {what} (longer than {MAX_TOKEN_LEN}'
                             ' characters). Exiting.')
        if len(words) > 1:
            self.say(f'Ignoring extra input: {" ".join(words[1:])}')
        return token

    def read_line(self, prompt, what) -> str:
        """ The whole answer; may be empty """
        return self._readline(prompt, what)


def run_script(path, say=print):
    """Run the generated script and report how it ended.

    Returns the exit status, or None if it could not be started.
    """
    say('Executing script...')
    try:
        result = subprocess.run([os.path.abspath(path)], check=False)
    except OSError as exc:
        say(f'{RED}Error: Failed to execute command: {exc.strerror or exc}{RESET}')
        return None
    if result.returncode < 0:
        say(f'{RED}Error: Command terminated by signal {-result.returncode}.{RESET}')
    elif result.returncode != 0:
        say(f'{RED}Error: Command exited with status {result.returncode}.{RESET}')
    else:
        say(f'{GREEN}Command executed successfully.{RESET}')
    return result.returncode


class StubCreator:
    """ One interactive session, from welcome to script """

    def __init__(self, prompter=None, sysinfo=None, images=None,
                 script_path=SCRIPT_NAME, script_runner=None):
        self.prompter = prompter or Prompter()
        self.sysinfo = sysinfo or SystemInfo()
        self.images = images or BootImages()
        self.script_path = script_path
        self.script_runner = script_runner or run_script
        self.session = Session()

    def say(self, text=''):
        """ Shorthand """
        self.prompter.say(text)

    def fail(self, message):
        """ Report a fatal error and exit(1) """
        self.say(f'{RED}{message}{RESET}')
        sys.exit(1)

    def welcome(self):
        """ Banner """
        self.say(f'{BLUE}Welcome to LUSC - A Linux UEFI STUB Creator')
        self.say('-----------------------------------------')
        self.say(f'-----------------------------------------{RESET}')

    def show_mount_hints(self):
        """ Tell which devices back /boot and / (if findmnt knows) """
        for mountpoint in ('/boot', '/'):
            device = self.sysinfo.get_device_for_mountpoint(mountpoint)
            if device:
                self.say(f'Hint: {mountpoint} is mounted from {device}')

    def collect_partitions(self):
        """ Ask for the partitions; verify they exist; split the EFI one """
        ses, ask = self.session, self.prompter
        ses.efi_partition = ask.read_token(
            'Please specify EFI partition (e.g., /dev/nvme0n1p1): ', 'EFI partition')
        ses.root_partition = ask.read_token(
            'Please specify root partition (e.g., /dev/nvme0n1p2): ', 'root partition')

        if not self.sysinfo.partition_exists(ses.efi_partition):
            raise PartitionError(f"Error: EFI partition '{ses.efi_partition}' not found!")
        if not self.sysinfo.partition_exists(ses.root_partition):
            raise PartitionError(f"Error: Root partition '{ses.root_partition}' not found!")

        ses.efi_disk, ses.efi_part = split_partition(ses.efi_partition)

    def resolve_uuids(self):
        """ Look up both filesystem UUIDs; either missing is fatal """
        ses = self.session
        ses.efi_uuid = self.sysinfo.get_uuid(ses.efi_partition) or ''
        if not ses.efi_uuid:
            raise PartitionError('Error retrieving UUID for EFI partition.')
        ses.root_uuid = self.sysinfo.get_uuid(ses.root_partition) or ''
        if not ses.root_uuid:
            raise PartitionError('Error retrieving UUID for root partition.')

    def compose(self):
        """ Ask for extra kernel parameters and build both entries """
        ses = self.session
        self.say(f'Current kernel parameters: {kernel_params(ses.root_uuid)}')
        self.say(f'{GREEN}initrd and initrd-fallback will be added automatically!{RESET}')
        ses.extra_params = self.prompter.read_line(
            'Add additional kernel parameters (or press Enter to keep current): ',
            'kernel parameters')
        params = kernel_params(ses.root_uuid, ses.extra_params)
        ses.primary, ses.fallback = compose_entries(
            ses.efi_disk, ses.efi_part, ses.label, params, self.images)

        self.say('Detected partitions:')
        self.say(f'EFI: {ses.efi_partition} ({ses.efi_uuid})')
        self.say(f'Root: {ses.root_partition} ({ses.root_uuid})')
        self.say()
        self.say('Composed commands:')
        self.say(ses.primary.command())
        self.say(ses.fallback.command())

    def emit(self):
        """ Write the script; failure is fatal """
        ses = self.session
        try:
            write_script(ses.primary, ses.fallback, self.script_path)
        except OSError as exc:
            self.fail(f'Error: Unable to create script file: {exc.strerror or exc}')
        self.say(f"Script file '{self.script_path}' created.")

    def dispatch(self):
        """ Act on the chosen action; always ends the session with 0 """
        action = self.session.action
        if action == 'c':
            self.say('Executable created. Exiting...')
        elif action == 'ce':
            self.script_runner(self.script_path, say=self.say)
        else:
            self.say('Aborted. Exiting...')
        return 0

    def run(self):
        """ The whole session; returns the exit code (or exits) """
        ses, ask = self.session, self.prompter
        try:
            self.welcome()
            choice = ask.read_char('Start creating UEFI boot entries? (y/N) ')
            if choice.lower() != 'y':
                self.say('Goodbye. Exiting...')
                return 0

            self.show_mount_hints()
            self.collect_partitions()
            ses.label = ask.read_token(
                'Please specify the label for the boot entry (e.g., Arch): ', 'boot label')
            self.resolve_uuids()
            self.compose()

            ses.action = ask.read_token(
                '\nCreate executable only, create and execute'
                ' (sets UEFI boot entries), or abort? (c/ce/a) ',
                'action choice').lower()
        except (InputError, PartitionError, EntryError) as exc:
            self.fail(str(exc))

        self.emit()
        return self.dispatch()


def is_root() -> bool:
    """ True when running with root privileges """
    return os.geteuid() == 0


def check_prereqs():
    """ Check that needed programs are installed. """
    ok = True
    for prog in PREREQS:
        if shutil.which(prog) is None:
            ok = False
            print(f'ERROR: cannot find {prog!r} on $PATH')
    if not ok:
        sys.exit(1)
    for prog in OPTIONAL:
        if shutil.which(prog) is None:
            print(f'WARNING: cannot find {prog!r} on $PATH')


def print_usage(prog):
    """ Usage text """
    print(f'Usage: {prog}')
    print(USAGE)


class _GateParser(argparse.ArgumentParser):
    """ argparse, but bad arguments exit 1 with our usage """

    raw_args = ()

    def error(self, message):
        bad = self.raw_args[0] if self.raw_args else message
        print(f'Unknown option: {bad}')
        print_usage(self.prog)
        sys.exit(1)


def parse_args(argv, prog):
    """Accept nothing or -h/--help.

    Help prints the usage and exits 0; anything else prints the usage
    and exits 1.
    """
    parser = _GateParser(prog=prog, add_help=False, allow_abbrev=False)
    parser.raw_args = tuple(argv)
    parser.add_argument('-h', '--help', action='store_true')
    opts, unknown = parser.parse_known_args(argv)
    if unknown:
        print(f'Unknown option: {unknown[0]}')
        print_usage(prog)
        sys.exit(1)
    if opts.help:
        print_usage(prog)
        sys.exit(0)
    return opts


def main(argv=None):
    """ The program """
    prog = os.path.basename(sys.argv[0]) or 'lusc'
    if argv is None:
        argv = sys.argv[1:]
    if not is_root():
        print(f'{RED}This script must be run with root privileges!{RESET}')
        print(f'type: sudo {prog} -h for usage and more info.')
        sys.exit(1)
    parse_args(argv, prog)
    check_prereqs()

    try:
        code = StubCreator().run()
    except KeyboardInterrupt:
        print()
        sys.exit(130)
    except Exception as exce:
        print("exception:", str(exce))
        print(traceback.format_exc())
        sys.exit(1)
    sys.exit(code)

if __name__ == '__main__':
    main()
