from neuroparticle.app import main

raise SystemExit(main())
