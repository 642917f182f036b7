"""
StudyREPL core: value model, record store, AST and random source
"""
