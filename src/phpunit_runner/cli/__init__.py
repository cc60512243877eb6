# src/phpunit_runner/cli/__init__.py
