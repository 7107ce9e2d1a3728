from devops_shell import main

main()
