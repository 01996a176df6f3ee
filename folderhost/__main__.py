from .scripts.serve_static import main

if __name__ == "__main__":
    main()
