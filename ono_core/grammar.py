"""
Ono module lexer grammar.

This module contains the Lark grammar used to tokenize component modules
before their import and export declarations are read. Only the lexer is
used; the rule below exists so that every terminal is kept.
"""

module_lexer_grammar = r"""
    start: token*
    ?token: NAME | STRING | TEMPLATE | NUMBER | PUNCT | OTHER

    // --- Terminals ---
    NAME: /(?:[^\W\d]|\$)(?:\w|\$)*/
    STRING: /"(?:[^"\\\n]|\\[\s\S])*"/ | /'(?:[^'\\\n]|\\[\s\S])*'/
    TEMPLATE: /`(?:[^`\\]|\\[\s\S])*`/
    NUMBER: /\d[\w.]*/
    PUNCT: /=>|\.\.\.|[{}()\[\];,.=*:]/

    // Any other character is a token of its own, so JSX never stops the lexer
    OTHER: /[\s\S]/

    LINE_COMMENT: /\/\/[^\n]*/
    BLOCK_COMMENT: /\/\*[\s\S]*?\*\//

    %import common.WS
    %ignore WS
    %ignore LINE_COMMENT
    %ignore BLOCK_COMMENT
"""
