import pulumi

from buildworker.provision.perimeter import SECURITY_RULES, declare_perimeter, security_rules


def test_exactly_four_inbound_allow_rules_in_priority_order():
    assert [(r.protocol, r.port) for r in SECURITY_RULES] == [
        ("Icmp", "*"),
        ("Tcp", "80"),
        ("Tcp", "443"),
        ("Tcp", "22"),
    ]
    priorities = [r.priority for r in SECURITY_RULES]
    assert priorities == sorted(set(priorities))


def test_rule_args():
    rules = security_rules()
    assert len(rules) == 4
    for rule in rules:
        assert rule.direction == "Inbound"
        assert rule.access == "Allow"
        assert rule.source_address_prefix == "*"
    assert [r.destination_port_range for r in rules] == ["*", "80", "443", "22"]


def test_perimeter_resources(worker_mocks):
    @pulumi.runtime.test
    def declare():
        return declare_perimeter("caddy", "caddy-rg").security_group_id

    declare()

    (vnet,) = worker_mocks.of_type(":VirtualNetwork")
    assert vnet.inputs["addressSpace"]["addressPrefixes"] == ["10.0.0.0/16"]
    (subnet,) = worker_mocks.of_type(":Subnet")
    assert subnet.inputs["addressPrefix"] == "10.0.1.0/24"
    (nsg,) = worker_mocks.of_type(":NetworkSecurityGroup")
    assert [r["priority"] for r in nsg.inputs["securityRules"]] == [100, 110, 120, 130]
