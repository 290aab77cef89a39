# sprig/grammar/templates.py
"""템플릿 전개: name{a1, a2} 호출을 본문으로 치환한다.

- 인자는 위치 순서대로 파라미터에 대응한다.
- 치환된 인자는 Group으로 감싸므로 `p*` 같은 수량자는 인자 전체에 걸린다.
- 본문 안의 호출은 깊이 우선으로 다시 전개한다.
"""

from __future__     import annotations
from typing         import Dict, List, Tuple
from .ast           import *
from ..errors       import (
    ArityMismatch, GrammarError, NameCollision, TemplateRecursionError, UndefinedTemplate,
)


def _template_table(g: GrammarFile) -> Dict[str, RuleDecl]:
    table: Dict[str, RuleDecl] = {}
    for t in g.templates:
        if t.name in table:
            line, col = (t.span.line, t.span.col) if t.span else (None, None)
            raise NameCollision(f"Template {t.name!r} is defined more than once",
                                symbol=t.name, line=line, column=col)
        table[t.name] = t
    return table


class TemplateExpander:
    """
    TemplateExpander
    ================
    템플릿 테이블을 들고 Expr 단위로 호출을 전개한다.
    `_stack`은 현재 전개 중인 템플릿 이름들(재귀 검출용)이다.
    """

    def __init__(self, templates: Dict[str, RuleDecl]):
        self.templates = templates
        self._stack: List[str] = []

    def expand(self, expr: Expr) -> Expr:
        return map_atoms(expr, self._expand_atom)

    def _expand_atom(self, a: Atom) -> Atom:
        # map_atoms가 인자(args)를 먼저 전개한 뒤 여기로 넘겨준다
        node = a.node
        if not isinstance(node, TemplateCall):
            return a
        body = self._instantiate(node)
        return Atom(Group(body, span=node.span), a.suffix, a.repeat, a.span)

    def _instantiate(self, call: TemplateCall) -> Expr:
        line, col = (call.span.line, call.span.col) if call.span else (None, None)
        templ = self.templates.get(call.name)
        if templ is None:
            raise UndefinedTemplate(f"Undefined template {call.name!r}",
                                    symbol=call.name, line=line, column=col)
        if len(call.args) != len(templ.params):
            raise ArityMismatch(
                f"Template {call.name!r} takes {len(templ.params)} argument(s), "
                f"got {len(call.args)}",
                symbol=call.name, line=line, column=col)
        if call.name in self._stack:
            chain = " -> ".join(self._stack + [call.name])
            raise TemplateRecursionError(f"Template invokes itself: {chain}",
                                         symbol=call.name, line=line, column=col)

        binding = dict(zip(templ.params, call.args))

        def _subst(a: Atom) -> Atom:
            node = a.node
            if isinstance(node, Name) and node.ident in binding:
                return Atom(Group(binding[node.ident], span=node.span), a.suffix, a.repeat, a.span)
            return a

        # 파라미터 치환은 본문 자체에만 적용(인자는 호출 쪽 스코프에서 이미 전개됨)
        substituted = map_atoms(templ.expr, _subst)
        for seq in substituted.alts:
            if seq.alias is not None:
                raise GrammarError(f"Template {call.name!r} body cannot carry aliases",
                                   symbol=call.name, line=line, column=col)

        self._stack.append(call.name)
        try:
            return self.expand(substituted)
        finally:
            self._stack.pop()


def expand_templates(g: GrammarFile) -> GrammarFile:
    """
    GrammarFile → 템플릿 선언이 제거되고 모든 호출이 전개된 GrammarFile.
    단말 정의 안의 템플릿 호출은 허용하지 않는다.
    """
    templates = _template_table(g)
    for r in g.plain_rules:
        if r.name in templates:
            line, col = (r.span.line, r.span.col) if r.span else (None, None)
            raise NameCollision(f"Rule {r.name!r} has the same name as a template",
                                symbol=r.name, line=line, column=col)
    ex = TemplateExpander(templates)

    rules = [
        RuleDecl(r.name, ex.expand(r.expr), params=[], priority=r.priority,
                 keep_all_tokens=r.keep_all_tokens, expand1=r.expand1, span=r.span)
        for r in g.plain_rules
    ]
    for t in g.terminals:
        for s in t.expr.alts:
            for a in s.items:
                if _contains_call(a):
                    raise GrammarError(f"Terminal {t.name} cannot invoke templates", symbol=t.name)
    ignores = [IgnoreDecl(ex.expand(ig.expr), span=ig.span) for ig in g.ignores]
    return GrammarFile(rules=rules, terminals=list(g.terminals), ignores=ignores,
                       imports=list(g.imports), declares=list(g.declares))


def _contains_call(a: Atom) -> bool:
    node = a.node
    if isinstance(node, TemplateCall):
        return True
    if isinstance(node, (Group, Maybe)):
        return any(_contains_call(x) for s in node.expr.alts for x in s.items)
    return False
