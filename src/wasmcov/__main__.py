from wasmcov.runners.wasmcov_main import main

raise SystemExit(main())
