"""Parser for the descriptor DSL.

Example::

    class Instance {}
    class Part : Instance {
        Size: Vector3,
        Material: Enum.Material [ReadOnly],
        Target: Class.Instance,
        function Resize(size: Vector3, snap: bool = true) -> bool,
    }
    class Workspace : Instance [Service] {}
    enum Material { Plastic = 256, Wood = 512 }

A bare type name is a primitive when it names one of the primitive value
types, and a data type otherwise. ``Category.Name`` names the category
explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import ply.yacc as yacc

from typed_host.descriptors import (
    ClassDesc,
    EnumDesc,
    EnumItemDesc,
    FunctionDesc,
    ParameterDesc,
    PropertyDesc,
    RootDesc,
    TypeCategory,
    TypeDesc,
)
from typed_host.parsing.desc_lexer import DescLexer

PRIMITIVES = frozenset(
    {"bool", "int", "int64", "float", "double", "string", "token", "nil", "number"}
)

CATEGORIES = frozenset(
    {
        TypeCategory.CLASS,
        TypeCategory.ENUM,
        TypeCategory.PRIMITIVE,
        TypeCategory.DATA_TYPE,
        TypeCategory.GROUP,
    }
)


@dataclass
class ClassSpec:
    """Specification for a class before resolution."""

    name: str
    superclass: str
    members: list[PropertyDesc | FunctionDesc]
    tags: set[str] = field(default_factory=set)


@dataclass
class EnumItemSpec:
    name: str
    explicit_value: int | None = None
    tags: set[str] = field(default_factory=set)


@dataclass
class EnumSpec:
    """Specification for an enum before resolution."""

    name: str
    items: list[EnumItemSpec]
    tags: set[str] = field(default_factory=set)


class DescParser:
    """Parser for the descriptor DSL."""

    tokens = DescLexer.tokens

    def __init__(self) -> None:
        self.lexer = DescLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_schema(self, p: yacc.YaccProduction) -> None:
        """schema : statement_list
                  | empty"""
        p[0] = p[1] or []

    def p_empty(self, p: yacc.YaccProduction) -> None:
        """empty :"""
        p[0] = None

    def p_statement_list_single(self, p: yacc.YaccProduction) -> None:
        """statement_list : statement"""
        p[0] = [p[1]]

    def p_statement_list_multiple(self, p: yacc.YaccProduction) -> None:
        """statement_list : statement_list statement"""
        p[0] = p[1] + [p[2]]

    def p_statement(self, p: yacc.YaccProduction) -> None:
        """statement : class_def
                     | enum_def"""
        p[0] = p[1]

    def p_class_def(self, p: yacc.YaccProduction) -> None:
        """class_def : CLASS IDENTIFIER superclass tags LBRACE member_block RBRACE"""
        p[0] = ClassSpec(name=p[2], superclass=p[3], members=p[6], tags=p[4])

    def p_superclass(self, p: yacc.YaccProduction) -> None:
        """superclass : COLON IDENTIFIER
                      | empty"""
        p[0] = p[2] if len(p) == 3 else ""

    def p_tags(self, p: yacc.YaccProduction) -> None:
        """tags : LBRACKET identifier_list RBRACKET
                | empty"""
        p[0] = set(p[2]) if len(p) == 4 else set()

    def p_identifier_list_single(self, p: yacc.YaccProduction) -> None:
        """identifier_list : IDENTIFIER"""
        p[0] = [p[1]]

    def p_identifier_list_multiple(self, p: yacc.YaccProduction) -> None:
        """identifier_list : identifier_list COMMA IDENTIFIER"""
        p[0] = p[1] + [p[3]]

    def p_member_block(self, p: yacc.YaccProduction) -> None:
        """member_block : member_list
                        | member_list COMMA
                        | empty"""
        p[0] = p[1] or []

    def p_member_list_single(self, p: yacc.YaccProduction) -> None:
        """member_list : member"""
        p[0] = [p[1]]

    def p_member_list_multiple(self, p: yacc.YaccProduction) -> None:
        """member_list : member_list COMMA member"""
        p[0] = p[1] + [p[3]]

    def p_member_property(self, p: yacc.YaccProduction) -> None:
        """member : IDENTIFIER COLON type_ref tags"""
        p[0] = PropertyDesc(name=p[1], value_type=p[3], tags=p[4])

    def p_member_function(self, p: yacc.YaccProduction) -> None:
        """member : FUNCTION IDENTIFIER LPAREN parameter_block RPAREN return_type tags"""
        p[0] = FunctionDesc(name=p[2], parameters=p[4], return_type=p[6], tags=p[7])

    def p_parameter_block(self, p: yacc.YaccProduction) -> None:
        """parameter_block : parameter_list
                           | empty"""
        p[0] = p[1] or []

    def p_parameter_list_single(self, p: yacc.YaccProduction) -> None:
        """parameter_list : parameter"""
        p[0] = [p[1]]

    def p_parameter_list_multiple(self, p: yacc.YaccProduction) -> None:
        """parameter_list : parameter_list COMMA parameter"""
        p[0] = p[1] + [p[3]]

    def p_parameter(self, p: yacc.YaccProduction) -> None:
        """parameter : IDENTIFIER COLON type_ref
                     | IDENTIFIER COLON type_ref EQUALS default_value"""
        default = p[5] if len(p) == 6 else None
        p[0] = ParameterDesc(param_type=p[3], name=p[1], default=default)

    def p_default_value(self, p: yacc.YaccProduction) -> None:
        """default_value : INTEGER
                         | STRING
                         | IDENTIFIER"""
        p[0] = str(p[1])

    def p_return_type(self, p: yacc.YaccProduction) -> None:
        """return_type : ARROW type_ref
                       | empty"""
        p[0] = p[2] if len(p) == 3 else None

    def p_type_ref_simple(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER"""
        category = TypeCategory.PRIMITIVE if p[1] in PRIMITIVES else TypeCategory.DATA_TYPE
        p[0] = TypeDesc(category=category, name=p[1])

    def p_type_ref_qualified(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER DOT IDENTIFIER"""
        if p[1] not in CATEGORIES:
            raise ValueError(f"Unknown type category '{p[1]}' (line {p.lineno(1)})")
        p[0] = TypeDesc(category=p[1], name=p[3])

    def p_enum_def(self, p: yacc.YaccProduction) -> None:
        """enum_def : ENUM IDENTIFIER tags LBRACE enum_item_block RBRACE"""
        p[0] = EnumSpec(name=p[2], items=p[5], tags=p[3])

    def p_enum_item_block(self, p: yacc.YaccProduction) -> None:
        """enum_item_block : enum_item_list
                           | enum_item_list COMMA
                           | empty"""
        p[0] = p[1] or []

    def p_enum_item_list_single(self, p: yacc.YaccProduction) -> None:
        """enum_item_list : enum_item"""
        p[0] = [p[1]]

    def p_enum_item_list_multiple(self, p: yacc.YaccProduction) -> None:
        """enum_item_list : enum_item_list COMMA enum_item"""
        p[0] = p[1] + [p[3]]

    def p_enum_item_bare(self, p: yacc.YaccProduction) -> None:
        """enum_item : IDENTIFIER tags"""
        p[0] = EnumItemSpec(name=p[1], tags=p[2])

    def p_enum_item_value(self, p: yacc.YaccProduction) -> None:
        """enum_item : IDENTIFIER EQUALS INTEGER tags"""
        p[0] = EnumItemSpec(name=p[1], explicit_value=p[3], tags=p[4])

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (line {p.lineno})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, **kwargs)

    def parse(self, data: str) -> RootDesc:
        """Parse descriptor definitions and return a descriptor table."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        self.lexer.lexer.lineno = 1
        specs = self.parser.parse(data, lexer=self.lexer.lexer) or []
        return self._resolve_specs(specs)

    def _resolve_specs(self, specs: list[ClassSpec | EnumSpec]) -> RootDesc:
        """Build the descriptor table and check superclass links."""
        root = RootDesc()
        for spec in specs:
            if isinstance(spec, ClassSpec):
                class_desc = ClassDesc(name=spec.name, superclass=spec.superclass, tags=spec.tags)
                for member in spec.members:
                    class_desc.add_member(member)
                root.add_class(class_desc)
            else:
                root.add_enum(self._resolve_enum_spec(spec))

        for class_desc in root.classes.values():
            if class_desc.superclass and class_desc.superclass not in root.classes:
                raise ValueError(
                    f"Class '{class_desc.name}' inherits from undefined class "
                    f"'{class_desc.superclass}'"
                )
        return root

    def _resolve_enum_spec(self, spec: EnumSpec) -> EnumDesc:
        """Assign item values; an item without a value follows the previous one."""
        enum_desc = EnumDesc(name=spec.name, tags=spec.tags)
        auto_value = 0
        for index, item_spec in enumerate(spec.items):
            if item_spec.explicit_value is not None:
                value = item_spec.explicit_value
            else:
                value = auto_value
            auto_value = value + 1
            enum_desc.add_item(
                EnumItemDesc(name=item_spec.name, value=value, index=index, tags=item_spec.tags)
            )
        return enum_desc


def parse_desc(data: str) -> RootDesc:
    """Parse descriptor DSL text into a descriptor table."""
    return DescParser().parse(data)
