from longflag.cli import main

raise SystemExit(main())
