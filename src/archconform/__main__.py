from archconform.cli import main

raise SystemExit(main())
