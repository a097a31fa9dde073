"""Built-in CLI sub-commands for codecapi.

* :mod:`~codecapi.commands.inspect` -- list the operations and models a
  document compiles to, and print a model's schema.
"""
