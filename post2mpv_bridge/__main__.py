from .native_host import main

if __name__ == "__main__":
    main()
