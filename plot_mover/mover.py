import os
import filecmp
import logging
import stat
import secrets
import string
from enum import Enum
from time import time

from .errors import CopyCancelled, CopyError, VerificationMismatchError
from .filesystem import TEMP_MARKER, _format_bytes, remove_quietly

DEFAULT_CHUNK_SIZE = 1024 * 1024


class TransferOutcome(Enum):
    MOVED = 'moved'
    COPY_FAILED = 'copy_failed'
    MISMATCH = 'mismatch'
    CANCELLED = 'cancelled'


def generate_temp_filename(original_path):
    dir_name = os.path.dirname(original_path)
    base_name = os.path.basename(original_path)
    suffix = ''.join(secrets.choice(string.ascii_letters + string.digits) for _ in range(6))
    temp_name = f".{base_name}.{TEMP_MARKER}-{suffix}"
    return os.path.join(dir_name, temp_name)

def copy_file_chunked(src, dest, stop_event=None, chunk_size=DEFAULT_CHUNK_SIZE):
    """
    Copy src to dest one chunk at a time.

    The stop event is checked before every chunk, so a shutdown aborts the
    copy after at most one chunk of I/O.

    Raises:
        CopyCancelled: If stop_event was set before the copy finished
        CopyError: On any I/O failure, or if src is not a regular file
    """
    try:
        src_stat = os.stat(src)
        if not stat.S_ISREG(src_stat.st_mode):
            raise CopyError(f"{src} is not a regular file")

        with open(src, 'rb') as source, open(dest, 'wb') as destination:
            while True:
                if stop_event is not None and stop_event.is_set():
                    raise CopyCancelled(f"Copy of {src} stopped by signal")
                chunk = source.read(chunk_size)
                if not chunk:
                    break
                destination.write(chunk)
    except CopyError:
        raise
    except OSError as e:
        raise CopyError(f"Error copying {src} to {dest}: {e}") from e

def verify_copy(src, dest):
    """Compare src and dest byte for byte. Raises VerificationMismatchError."""
    try:
        equal = filecmp.cmp(src, dest, shallow=False)
    except OSError as e:
        raise VerificationMismatchError(src, dest, reason=str(e)) from e
    if not equal:
        raise VerificationMismatchError(src, dest)

def _apply_source_mode(src, dest):
    try:
        os.chmod(dest, stat.S_IMODE(os.stat(src).st_mode))
    except OSError as e:
        logging.warning(f"Failed to set permissions for {dest}: {e}")

def transfer_plot(reservation, stop_event=None, chunk_size=DEFAULT_CHUNK_SIZE,
                  copy_func=copy_file_chunked, compare_func=verify_copy):
    """
    Move one plot to its reserved volume: copy, verify, then delete the source.

    Every outcome is contained here. The reservation is released on all exit
    paths, and a failed or cancelled transfer leaves the source in place for
    the next round.

    Args:
        reservation (Reservation): Source, destination and volume to use
        stop_event (threading.Event): Shared shutdown token
        chunk_size (int): Bytes per read/write
        copy_func (callable): copy_func(src, dest, stop_event, chunk_size)
        compare_func (callable): compare_func(src, dest), raises on mismatch

    Returns:
        tuple: (TransferOutcome, bytes_moved, time_taken)
    """
    with reservation:
        src = reservation.source_path
        dest = reservation.dest_path
        temp_dest = generate_temp_filename(dest)
        start_time = time()

        logging.info(f"Start copying {src} to {dest} ({_format_bytes(reservation.size)})")
        logging.debug(f"Using temp file: {temp_dest}")

        try:
            copy_func(src, temp_dest, stop_event, chunk_size)
        except CopyCancelled:
            remove_quietly(temp_dest)
            logging.warning(f"Copy from {src} to {dest} cancelled by shutdown, source kept")
            return TransferOutcome.CANCELLED, 0, time() - start_time
        except CopyError as e:
            remove_quietly(temp_dest)
            logging.error(f"{e}, will copy again later")
            return TransferOutcome.COPY_FAILED, 0, time() - start_time

        try:
            compare_func(src, temp_dest)
        except VerificationMismatchError as e:
            remove_quietly(temp_dest)
            logging.error(f"{e}, will copy again later")
            return TransferOutcome.MISMATCH, 0, time() - start_time

        _apply_source_mode(src, temp_dest)

        try:
            os.rename(temp_dest, dest)
            logging.debug(f"Renamed temp file to final destination: {dest}")
        except OSError as e:
            remove_quietly(temp_dest)
            logging.error(f"Failed to rename {temp_dest} to {dest}: {e}")
            return TransferOutcome.COPY_FAILED, 0, time() - start_time

        try:
            os.remove(src)
        except FileNotFoundError:
            logging.warning(f"Source file {src} already gone, keeping {dest}")
        except OSError as e:
            logging.error(f"Failed to remove source file {src}: {e}")
            remove_quietly(dest)
            return TransferOutcome.COPY_FAILED, 0, time() - start_time

        time_taken = time() - start_time
        logging.info(
            f"Moved {_format_bytes(reservation.size)} in {time_taken:.1f}s",
            extra={'plot_transfer': True, 'src': src, 'dest': dest,
                   'size': reservation.size, 'elapsed': time_taken}
        )
        return TransferOutcome.MOVED, reservation.size, time_taken
