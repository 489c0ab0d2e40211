from __future__ import annotations

from fiducial_odom.entry import main

raise SystemExit(main())
