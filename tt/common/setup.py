import os
from pathlib import Path
from dataclasses import dataclass

# Lil helper function to create missing directories if missing, and optionally error out when a path
# doesn't exist.
def ensure_directory(path: Path,must_exist=False):
    if must_exist:
        if not path.exists():
            raise FileNotFoundError(f"Required directory is missing: {path}")
        if not path.is_dir():
            raise NotADirectoryError(f"Expected a directory, got a file: {path}")
    else:
        path.mkdir(parents=True,exist_ok=True)
    return path

# Picks the folder that holds all user-specific TaskTimer data. TASKTIMER_HOME always wins, then APPDATA on
# Windows, then the XDG data folder everywhere else.
def resolve_data_root() -> Path:
    override = os.getenv("TASKTIMER_HOME")
    if override:
        return Path(override)
    appdata = os.getenv("APPDATA")
    if appdata:
        return Path(appdata) / "TaskTimer"
    xdg = os.getenv("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "TaskTimer"
    return Path.home() / ".local" / "share" / "TaskTimer"

# Dataclass for accessing paths across program.
@dataclass(frozen=False)
class ProjectPaths:

    root: Path
    data: Path

    logs: Path
    current: Path

    @staticmethod
    def build():
        # Folder for the source/install itself
        root = Path(__file__).resolve().parents[2]

        # Folder for all tasktimer user-specific and session related stuff
        data = ensure_directory(resolve_data_root())

        # Folders within the data folder
        logs = ensure_directory(data / "logs")
        current = ensure_directory(data / "current")

        return ProjectPaths(
            root = root,
            data = data,
            logs = logs,
            current = current,
        )
PATHS = ProjectPaths.build()
