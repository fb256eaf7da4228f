from phish_triage_agent.cli import main

raise SystemExit(main())
