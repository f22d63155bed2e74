"""runtime — what the generated `pangolin` launcher runs before the server.

    python -m pkgforge.runtime --root <share> ... -- <server args>

See bootstrap.py for the sequence and its states.
"""
