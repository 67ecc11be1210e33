"""Tests for threat chain resolution and maturest-threat selection."""

import logging

from threat_assurance.chains import (
    ChainResolver, HeuristicChain, LinkedChain, SingleThreat, ThreatSignature,
)
from threat_assurance.schemas import ThreatStage

from tests.conftest import make_threat


class TestLinkedChains:

    def test_chain_includes_ancestors_and_descendants(self, chained_store):
        resolver = ChainResolver(chained_store.list_threats())
        chain = resolver.resolve('M1')
        assert isinstance(chain, LinkedChain)
        assert chain.root_id == 'I1'
        assert set(chain.member_ids) == {'I1', 'M1', 'M2', 'F1'}

    def test_every_member_resolves_to_same_chain(self, chained_store):
        resolver = ChainResolver(chained_store.list_threats())
        expected = set(resolver.related_ids('I1'))
        for threat_id in expected:
            assert set(resolver.related_ids(threat_id)) == expected

    def test_unparented_threat_stays_alone_when_links_exist(self, chained_store):
        resolver = ChainResolver(chained_store.list_threats())
        assert resolver.related_ids('I3') == ['I3']

    def test_separate_roots_are_separate_chains(self, chained_store):
        resolver = ChainResolver(chained_store.list_threats())
        assert set(resolver.related_ids('M3')) == {'I2', 'M3'}
        assert 'M3' not in resolver.related_ids('F1')

    def test_unknown_threat_returns_none(self, chained_store):
        resolver = ChainResolver(chained_store.list_threats())
        assert resolver.resolve('NOPE') is None
        assert resolver.related_ids('NOPE') == []

    def test_stale_parent_ends_walk_at_orphan(self):
        threats = [
            make_threat('I1', ThreatStage.INITIAL),
            make_threat('M1', ThreatStage.INTERMEDIATE, parent_id='DELETED'),
            make_threat('F1', ThreatStage.FINAL, parent_id='M1'),
        ]
        resolver = ChainResolver(threats)
        chain = resolver.resolve('F1')
        assert chain.root_id == 'M1'
        assert set(chain.member_ids) == {'M1', 'F1'}

    def test_chains_lists_each_family_once(self, chained_store):
        resolver = ChainResolver(chained_store.list_threats())
        chains = resolver.chains()
        assert len(chains) == 3
        assert sorted(len(c.members) for c in chains) == [1, 2, 4]


class TestMalformedChains:

    def test_cycle_falls_back_to_single_threat(self, caplog):
        threats = [
            make_threat('A', ThreatStage.INTERMEDIATE, parent_id='B'),
            make_threat('B', ThreatStage.INTERMEDIATE, parent_id='A'),
        ]
        resolver = ChainResolver(threats)
        with caplog.at_level(logging.WARNING, logger='threat_assurance.chains'):
            chain = resolver.resolve('A')
        assert isinstance(chain, SingleThreat)
        assert chain.member_ids == ['A']
        assert 'Malformed parent chain' in caplog.text

    def test_walk_deeper_than_stage_count_is_rejected(self):
        threats = [
            make_threat('T1', ThreatStage.INITIAL),
            make_threat('T2', ThreatStage.INTERMEDIATE, parent_id='T1'),
            make_threat('T3', ThreatStage.FINAL, parent_id='T2'),
            make_threat('T4', ThreatStage.FINAL, parent_id='T3'),
        ]
        resolver = ChainResolver(threats)
        assert resolver.find_root(threats[2]).id == 'T1'
        assert resolver.find_root(threats[3]) is None
        assert isinstance(resolver.resolve('T4'), SingleThreat)


class TestHeuristicChains:

    NATION_STATE_INITIAL = 'A nation state with advanced capabilities could steal data of the payroll system'
    NATION_STATE_INTERMEDIATE = 'Using phishing, a nation state could gain access of the payroll system'

    def test_signature_extracts_actor_and_asset(self):
        assert ThreatSignature.actor(self.NATION_STATE_INITIAL) == 'nation state'
        assert ThreatSignature.asset(self.NATION_STATE_INITIAL) == 'payroll system'
        assert ThreatSignature.key(self.NATION_STATE_INTERMEDIATE) == 'nation state::payroll system'

    def test_groups_matching_statements_without_parent_links(self):
        threats = [
            make_threat('I1', ThreatStage.INITIAL, text=self.NATION_STATE_INITIAL),
            make_threat('M1', ThreatStage.INTERMEDIATE, text=self.NATION_STATE_INTERMEDIATE),
            make_threat('I2', ThreatStage.INITIAL, text='A hacker could deface the website'),
        ]
        resolver = ChainResolver(threats)
        assert not resolver.uses_parent_links
        chain = resolver.resolve('I1')
        assert isinstance(chain, HeuristicChain)
        assert set(chain.member_ids) == {'I1', 'M1'}
        assert resolver.related_ids('I2') == ['I2']

    def test_statement_without_actor_phrase_stays_single(self):
        threats = [
            make_threat('I1', ThreatStage.INITIAL, text='Data could be lost of the payroll system'),
            make_threat('I2', ThreatStage.INITIAL, text='Records could be lost of the payroll system'),
        ]
        resolver = ChainResolver(threats)
        assert resolver.related_ids('I1') == ['I1']

    def test_any_parent_link_disables_heuristic(self):
        threats = [
            make_threat('I1', ThreatStage.INITIAL, text=self.NATION_STATE_INITIAL),
            make_threat('I2', ThreatStage.INITIAL, text=self.NATION_STATE_INITIAL),
            make_threat('M1', ThreatStage.INTERMEDIATE, parent_id='I2'),
        ]
        resolver = ChainResolver(threats)
        assert isinstance(resolver.resolve('I1'), LinkedChain)
        assert resolver.related_ids('I1') == ['I1']


class TestMaturestThreats:

    def test_picks_highest_stage_per_chain(self, chained_store):
        resolver = ChainResolver(chained_store.list_threats())
        assert [t.id for t in resolver.maturest_threats()] == ['F1', 'M3', 'I3']

    def test_empty_project(self):
        assert ChainResolver([]).maturest_threats() == []
