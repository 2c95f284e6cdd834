import os
import sys

from colorama import Fore, Style, init

init(autoreset=True)


def _quiet() -> bool:
    return os.getenv("QUILL_QUIET", "0") == "1"


def _emit(color, msg, stream=None):
    if _quiet():
        return
    stream = stream or sys.stdout
    text = color + str(msg) + Style.RESET_ALL
    try:
        print(text, file=stream)
    except UnicodeEncodeError:
        encoding = getattr(stream, 'encoding', None) or 'utf-8'
        print(text.encode(encoding, errors='replace').decode(encoding), file=stream)


def print_info(msg):
    _emit(Fore.CYAN, msg)

def print_warn(msg):
    _emit(Fore.YELLOW, msg)

def print_error(msg):
    _emit(Fore.RED, msg, sys.stderr)

def print_success(msg):
    _emit(Fore.GREEN, msg)

def print_debug(msg):
    if os.getenv("QUILL_DEBUG", "0") == "1":
        _emit(Fore.MAGENTA, msg)
