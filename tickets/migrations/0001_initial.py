import django.db.models.deletion
from django.db import migrations, models


PRIORITY_CHOICES = [
    ('low', 'Low'), ('medium', 'Medium'), ('high', 'High'), ('critical', 'Critical'),
]

ROLE_CHOICES = [
    ('Super Admin', 'Super Admin'),
    ('CEO', 'CEO'),
    ('Director', 'Director'),
    ('Head of Department', 'Head of Department'),
    ('IT Manager', 'IT Manager'),
    ('Operations Manager', 'Operations Manager'),
    ('Finance Manager', 'Finance Manager'),
    ('HR Manager', 'HR Manager'),
    ('Procurement Manager', 'Procurement Manager'),
    ('Safety Manager', 'Safety Manager'),
    ('Line Manager', 'Line Manager'),
    ('Manager', 'Manager'),
    ('Project Manager', 'Project Manager'),
    ('IT Administrator', 'IT Administrator'),
    ('Senior Agent', 'Senior Agent'),
    ('Agent', 'Agent'),
    ('Requester', 'Requester'),
    ('Contractor', 'Contractor'),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Department',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, unique=True, verbose_name='Name')),
                ('code', models.CharField(max_length=20, unique=True, verbose_name='Code')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('is_support_team', models.BooleanField(default=False, verbose_name='Support Team')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'verbose_name': 'Department',
                'verbose_name_plural': 'Departments',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Employee',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('employee_id', models.CharField(max_length=30, unique=True,
                                                 verbose_name='Employee ID')),
                ('first_name', models.CharField(max_length=60, verbose_name='First Name')),
                ('last_name', models.CharField(max_length=60, verbose_name='Last Name')),
                ('email', models.EmailField(max_length=254, unique=True, verbose_name='Email')),
                ('role', models.CharField(choices=ROLE_CHOICES, default='Requester',
                                          max_length=40, verbose_name='Role')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('department', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='members', to='tickets.department',
                    verbose_name='Department',
                )),
            ],
            options={
                'verbose_name': 'Employee',
                'verbose_name_plural': 'Employees',
                'ordering': ['last_name', 'first_name'],
            },
        ),
        migrations.AddField(
            model_name='department',
            name='manager',
            field=models.ForeignKey(
                blank=True, null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name='managed_departments', to='tickets.employee',
                verbose_name='Manager',
            ),
        ),
        migrations.CreateModel(
            name='SlaPolicy',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, verbose_name='Name')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('priority', models.CharField(choices=PRIORITY_CHOICES, default='medium',
                                              max_length=10, verbose_name='Priority')),
                ('response_time', models.PositiveIntegerField(verbose_name='Response Time (min)')),
                ('resolution_time', models.PositiveIntegerField(verbose_name='Resolution Time (min)')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
            ],
            options={
                'verbose_name': 'SLA Policy',
                'verbose_name_plural': 'SLA Policies',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Tag',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=50, unique=True, verbose_name='Name')),
                ('color', models.CharField(default='#6b7280', max_length=7, verbose_name='Color')),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='TicketCategory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, verbose_name='Name')),
                ('slug', models.SlugField(max_length=120, unique=True, verbose_name='Slug')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('sort_order', models.IntegerField(default=0, verbose_name='Sort Order')),
                ('requires_approval', models.BooleanField(default=True,
                                                          verbose_name='Requires LM Approval')),
                ('requires_hod_approval', models.BooleanField(default=False,
                                                              verbose_name='Requires HOD Approval')),
                ('hod_approval_threshold', models.DecimalField(
                    blank=True, decimal_places=2, max_digits=10, null=True,
                    verbose_name='HOD Cost Threshold',
                )),
                ('default_team', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='default_categories', to='tickets.department',
                    verbose_name='Default Team',
                )),
                ('parent', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='children', to='tickets.ticketcategory',
                    verbose_name='Parent Category',
                )),
            ],
            options={
                'verbose_name': 'Ticket Category',
                'verbose_name_plural': 'Ticket Categories',
                'ordering': ['sort_order', 'name'],
            },
        ),
        migrations.CreateModel(
            name='Ticket',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('ticket_number', models.CharField(editable=False, max_length=20, unique=True)),
                ('subject', models.CharField(max_length=255, verbose_name='Subject')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('status', models.CharField(
                    choices=[
                        ('open', 'Open'),
                        ('assigned', 'Assigned'),
                        ('in_progress', 'In Progress'),
                        ('pending', 'Pending'),
                        ('resolved', 'Resolved'),
                        ('closed', 'Closed'),
                        ('cancelled', 'Cancelled'),
                    ],
                    default='open', max_length=20,
                )),
                ('priority', models.CharField(choices=PRIORITY_CHOICES, default='medium',
                                              max_length=10)),
                ('source', models.CharField(
                    choices=[
                        ('web', 'Web'),
                        ('email', 'Email'),
                        ('phone', 'Phone'),
                        ('mobile_app', 'Mobile App'),
                        ('walk_in', 'Walk-in'),
                    ],
                    default='web', max_length=20,
                )),
                ('estimated_cost', models.DecimalField(
                    blank=True, decimal_places=2, max_digits=12, null=True,
                    verbose_name='Estimated Cost',
                )),
                ('first_response_at', models.DateTimeField(blank=True, null=True)),
                ('first_response_due_at', models.DateTimeField(blank=True, null=True)),
                ('resolution_due_at', models.DateTimeField(blank=True, null=True)),
                ('resolved_at', models.DateTimeField(blank=True, null=True)),
                ('closed_at', models.DateTimeField(blank=True, null=True)),
                ('response_sla_breached', models.BooleanField(default=False)),
                ('resolution_sla_breached', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_agent', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='assigned_tickets', to='tickets.employee',
                    verbose_name='Assigned Agent',
                )),
                ('assigned_team', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='team_tickets', to='tickets.department',
                    verbose_name='Assigned Team',
                )),
                ('category', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='tickets', to='tickets.ticketcategory',
                    verbose_name='Category',
                )),
                ('requester', models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name='requested_tickets', to='tickets.employee',
                    verbose_name='Requester',
                )),
                ('sla_policy', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='tickets', to='tickets.slapolicy',
                    verbose_name='SLA Policy',
                )),
                ('tags', models.ManyToManyField(blank=True, related_name='tickets',
                                                to='tickets.tag')),
                ('watchers', models.ManyToManyField(blank=True, related_name='watched_tickets',
                                                    to='tickets.employee')),
            ],
            options={
                'verbose_name': 'Ticket',
                'verbose_name_plural': 'Tickets',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='TicketHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('action', models.CharField(max_length=40)),
                ('field_name', models.CharField(blank=True, max_length=60)),
                ('old_value', models.TextField(blank=True, null=True)),
                ('new_value', models.TextField(blank=True, null=True)),
                ('description', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('ticket', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='history', to='tickets.ticket',
                )),
                ('user', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+', to='tickets.employee',
                )),
            ],
            options={
                'verbose_name': 'Ticket History',
                'verbose_name_plural': 'Ticket History',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='TicketComment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('body', models.TextField()),
                ('is_internal', models.BooleanField(default=False, verbose_name='Internal Note')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('author', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='comments', to='tickets.employee',
                )),
                ('parent', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='replies', to='tickets.ticketcomment',
                )),
                ('ticket', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='comments', to='tickets.ticket',
                )),
            ],
            options={
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='TicketApproval',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('approval_level', models.CharField(
                    choices=[('lm', 'Line Manager'), ('hod', 'Head of Department')],
                    max_length=5,
                )),
                ('status', models.CharField(
                    choices=[('pending', 'Pending'), ('approved', 'Approved'),
                             ('rejected', 'Rejected')],
                    default='pending', max_length=10,
                )),
                ('comments', models.TextField(blank=True, default='')),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('rejected_at', models.DateTimeField(blank=True, null=True)),
                ('sequence', models.PositiveIntegerField(default=1)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('approver', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='ticket_approvals', to='tickets.employee',
                )),
                ('routed_to_team', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+', to='tickets.department',
                )),
                ('ticket', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='approvals', to='tickets.ticket',
                )),
            ],
            options={
                'verbose_name': 'Ticket Approval',
                'verbose_name_plural': 'Ticket Approvals',
                'ordering': ['sequence', 'id'],
            },
        ),
        migrations.CreateModel(
            name='AutomationRule',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150, verbose_name='Name')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('conditions', models.JSONField(blank=True, default=list, verbose_name='Conditions')),
                ('actions', models.JSONField(default=list, verbose_name='Actions')),
                ('priority', models.IntegerField(default=0, help_text='Higher runs first.',
                                                 verbose_name='Priority')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('execution_count', models.PositiveIntegerField(default=0, editable=False)),
                ('last_executed_at', models.DateTimeField(blank=True, editable=False, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('trigger_event', models.CharField(
                    choices=[
                        ('ticket_created', 'Ticket Created'),
                        ('ticket_updated', 'Ticket Updated'),
                        ('ticket_status_changed', 'Ticket Status Changed'),
                    ],
                    default='ticket_created', max_length=40, verbose_name='Trigger',
                )),
            ],
            options={
                'verbose_name': 'Automation Rule',
                'verbose_name_plural': 'Automation Rules',
                'ordering': ['-priority', 'id'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='EscalationRule',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150, verbose_name='Name')),
                ('description', models.TextField(blank=True, verbose_name='Description')),
                ('conditions', models.JSONField(blank=True, default=list, verbose_name='Conditions')),
                ('actions', models.JSONField(default=list, verbose_name='Actions')),
                ('priority', models.IntegerField(default=0, help_text='Higher runs first.',
                                                 verbose_name='Priority')),
                ('is_active', models.BooleanField(default=True, verbose_name='Active')),
                ('execution_count', models.PositiveIntegerField(default=0, editable=False)),
                ('last_executed_at', models.DateTimeField(blank=True, editable=False, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('time_trigger_type', models.CharField(
                    blank=True,
                    choices=[
                        ('created_at', 'Time Since Creation'),
                        ('updated_at', 'Time Since Last Update'),
                        ('first_response_due_at', 'Time Until First Response Due'),
                        ('resolution_due_at', 'Time Until Resolution Due'),
                    ],
                    max_length=40, verbose_name='Time Trigger',
                )),
                ('time_trigger_minutes', models.PositiveIntegerField(
                    blank=True, null=True, verbose_name='After (minutes)',
                )),
            ],
            options={
                'verbose_name': 'Escalation Rule',
                'verbose_name_plural': 'Escalation Rules',
                'ordering': ['-priority', 'id'],
                'abstract': False,
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('type', models.CharField(max_length=40)),
                ('title', models.CharField(max_length=255)),
                ('message', models.TextField()),
                ('data', models.JSONField(blank=True, null=True)),
                ('is_read', models.BooleanField(default=False)),
                ('read_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('recipient', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='notifications', to='tickets.employee',
                )),
                ('related_user', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='+', to='tickets.employee',
                )),
                ('ticket', models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='notifications', to='tickets.ticket',
                )),
            ],
            options={
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='Setting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('key', models.CharField(max_length=100, unique=True)),
                ('value', models.TextField(blank=True, default='')),
                ('type', models.CharField(
                    choices=[('string', 'String'), ('integer', 'Integer'),
                             ('boolean', 'Boolean'), ('json', 'JSON')],
                    default='string', max_length=10,
                )),
                ('group', models.CharField(default='general', max_length=50)),
                ('description', models.CharField(blank=True, max_length=255)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['group', 'key'],
            },
        ),
        migrations.CreateModel(
            name='SavedSearch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True,
                                           serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=150)),
                ('filters', models.JSONField(blank=True, default=dict)),
                ('is_shared', models.BooleanField(default=False, verbose_name='Shared')),
                ('usage_count', models.PositiveIntegerField(default=0, editable=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='saved_searches', to='tickets.employee',
                )),
            ],
            options={
                'verbose_name': 'Saved Search',
                'verbose_name_plural': 'Saved Searches',
                'ordering': ['name'],
            },
        ),
    ]
