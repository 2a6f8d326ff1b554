import sys

from seo_dashboard.cli import main

sys.exit(main())
