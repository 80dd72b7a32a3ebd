import os
import re
import logging

from .filesystem import TEMP_MARKER, _format_bytes

TEMP_FILE_PATTERN = re.compile(rf'^\.(?P<name>.+)\.{TEMP_MARKER}-[a-zA-Z0-9]{{6}}$')

def is_temp_file(filename, suffix='.plot'):
    """Match the hidden ``.<name>.plotmv-XXXXXX`` partial copies written by transfer_plot."""
    match = TEMP_FILE_PATTERN.match(filename)
    if match is None:
        return False
    name = match.group('name')
    return len(name) > len(suffix) and name.endswith(suffix)

def cleanup_orphaned_temp_files(destination_paths, suffix='.plot'):
    """
    Remove partial copies left on destination volumes by a killed run.

    Must only run before any worker starts: a live copy looks the same.

    Returns:
        tuple: (cleaned_count, cleaned_size)
    """
    cleaned_count = 0
    cleaned_size = 0

    logging.info("Scanning destination volumes for orphaned temp files from previous runs")

    for volume in destination_paths:
        try:
            entries = sorted(os.listdir(volume))
        except OSError as e:
            logging.warning(f"Failed to scan {volume} for temp files: {e}")
            continue

        for filename in entries:
            if not is_temp_file(filename, suffix):
                continue
            temp_path = os.path.join(volume, filename)
            try:
                if not os.path.isfile(temp_path):
                    continue
                file_size = os.path.getsize(temp_path)
                os.remove(temp_path)
                logging.info(f"Cleaned orphaned temp file: {temp_path} ({_format_bytes(file_size)})")
                cleaned_count += 1
                cleaned_size += file_size
            except OSError as e:
                logging.warning(f"Failed to clean temp file {temp_path}: {e}")

    if cleaned_count > 0:
        logging.info(f"Cleanup complete: {cleaned_count} orphaned files ({_format_bytes(cleaned_size)})")
    else:
        logging.debug("No orphaned temp files found")

    return cleaned_count, cleaned_size
