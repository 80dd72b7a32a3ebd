import os
import shutil
import stat
import logging
import psutil

LAUNCHER_NAME = 'plot-mover.py'

# Tag between the plot name and the random tail of an in-progress copy
TEMP_MARKER = 'plotmv'

def get_fs_free_space(path):
    """Get free space in bytes available to an unprivileged writer at path."""
    return shutil.disk_usage(path).free

def _format_bytes(bytes: int) -> str:
    """Format bytes into human readable format."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes < 1024:
            return f"{bytes:.2f}{unit}"
        bytes /= 1024
    return f"{bytes:.2f}PB"

def is_plot_file(name, suffix):
    """
    Check whether a file name carries the plot suffix.

    Hidden temp copies (``.name.plot.plotmv-abc123``) never match because the
    random tail follows the suffix.

    Args:
        name (str): Base name of the file
        suffix (str): Required suffix, e.g. ``.plot``

    Returns:
        bool: True if the name ends with the suffix and has a stem
    """
    return len(name) > len(suffix) and name.endswith(suffix)

def is_regular_file(path):
    """
    Check whether path is a regular file without following symlinks.

    Args:
        path (str): Path to check

    Returns:
        tuple: (is_regular, size) where size is None for non-regular entries

    Raises:
        FileNotFoundError: If the entry vanished since it was listed
    """
    st = os.lstat(path)
    if stat.S_ISREG(st.st_mode):
        return True, st.st_size
    return False, None

def remove_quietly(path):
    """Remove a file if present. Failures are logged, never raised."""
    try:
        os.remove(path)
        logging.debug(f"Removed {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logging.warning(f"Failed to remove {path}: {e}")

def is_script_running():
    """
    Check if another instance of the mover is already running.

    In-flight bookkeeping is memory-resident, so two movers sharing the same
    volumes would double-book them.

    Returns:
        tuple: (bool, list) - (is_running, list of running instances)
    """
    current_process = psutil.Process()

    # Docker check for process inside container
    if os.environ.get('DOCKER_CONTAINER'):
        running_instances = []
        for process in psutil.process_iter(['pid', 'name', 'cmdline']):
            if process.pid == current_process.pid:
                continue
            try:
                if _is_mover_process(process) and not is_child_process(current_process, process):
                    running_instances.append(' '.join(process.cmdline()))
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return bool(running_instances), running_instances

    for process in psutil.process_iter(['pid', 'name', 'cmdline']):
        if process.pid != current_process.pid:
            try:
                if _is_mover_process(process) and not is_child_process(current_process, process):
                    return True, [' '.join(process.cmdline())]
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                pass
    return False, []

def _is_mover_process(process):
    if process.name() not in ('python', 'python3'):
        return False
    cmdline = process.cmdline()
    return any(LAUNCHER_NAME in arg for arg in cmdline[1:])

def is_child_process(parent, child):
    """Check if one process is a child of another."""
    try:
        return child.ppid() == parent.pid
    except psutil.NoSuchProcess:
        return False
