from k8s_mcp.commands import main

main()
