from cruisesync.ui.cli import run

run()
