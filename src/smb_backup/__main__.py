import sys

from smb_backup.cli import main

sys.exit(main())
