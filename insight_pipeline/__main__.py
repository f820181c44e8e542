import sys

from insight_pipeline.pipeline.cli import main

sys.exit(main())
