"""Package entry point for ``python -m quest_hud``.

WHY: Operators run the service as ``python -m quest_hud serve`` and try
out the display engine with ``python -m quest_hud preview "some text"``.

HOW: Delegates straight to the CLI's main().
"""

from quest_hud.cli import main

if __name__ == "__main__":
    main()
