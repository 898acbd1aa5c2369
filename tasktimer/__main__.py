from tasktimer.main import main

main()
