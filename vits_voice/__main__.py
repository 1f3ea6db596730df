import sys

from vits_voice.cli import main

sys.exit(main())
