"""Allow `python -m low_music`."""

from low_music.cli import main_entry

main_entry()
