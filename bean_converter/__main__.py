"""Package entry point for ``python -m bean_converter``.

WHY: Users run the converter as ``python -m bean_converter doc.json
--into models:User``. Python's ``-m`` flag looks for ``__main__.py``
inside the package and executes it.

HOW: Delegates to the CLI's main() function.
"""

if __name__ == "__main__":
    from bean_converter.cli import main
    main()
