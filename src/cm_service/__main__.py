from cm_service.cli import main

raise SystemExit(main())
